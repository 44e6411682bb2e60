"""Row-level access to disasters, resources and reports.

All methods return plain dicts. SQLAlchemy failures surface as StorageError,
missing rows as NotFoundError.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from errors import NotFoundError, StorageError
from models import Disaster, Report, Resource, utcnow
from services.geo import within_radius

logger = logging.getLogger(__name__)

DISASTER_FIELDS = ("title", "location_name", "description", "tags", "lat", "lon")
RESOURCE_FIELDS = ("name", "location_name", "type", "lat", "lon", "disaster_id")


class RecordStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._sessions = session_factory

    @contextmanager
    def _session(self, write: bool = False) -> Iterator[Session]:
        try:
            if write:
                with self._sessions.begin() as session:
                    yield session
            else:
                with self._sessions() as session:
                    yield session
        except SQLAlchemyError as e:
            raise StorageError(f"Datastore error: {e}") from e

    @staticmethod
    def _require(session: Session, model, entity_id: str, label: str):
        row = session.get(model, entity_id)
        if row is None:
            raise NotFoundError(label, entity_id)
        return row

    # -- disasters ---------------------------------------------------------

    def create_disaster(self, data: dict, owner_id: str) -> dict:
        with self._session(write=True) as session:
            disaster = Disaster(
                **{f: data.get(f) for f in DISASTER_FIELDS},
                owner_id=owner_id,
                audit_trail=[{"action": "created", "user_id": owner_id, "timestamp": utcnow().isoformat()}],
            )
            disaster.tags = disaster.tags or []
            session.add(disaster)
            session.flush()
            return disaster.to_dict()

    def list_disasters(self, tag: str | None = None, limit: int = 20, offset: int = 0) -> list[dict]:
        stmt = select(Disaster).order_by(Disaster.created_at.desc(), Disaster.id)
        with self._session() as session:
            if not tag:
                rows = session.scalars(stmt.offset(offset).limit(limit)).all()
                return [r.to_dict() for r in rows]
            # JSON containment isn't portable across SQL dialects
            rows = [r for r in session.scalars(stmt) if tag in (r.tags or [])]
            return [r.to_dict() for r in rows[offset:offset + limit]]

    def get_disaster(self, disaster_id: str) -> dict:
        with self._session() as session:
            return self._require(session, Disaster, disaster_id, "Disaster").to_dict()

    def update_disaster(self, disaster_id: str, data: dict, user_id: str) -> dict:
        with self._session(write=True) as session:
            disaster = self._require(session, Disaster, disaster_id, "Disaster")
            for field in DISASTER_FIELDS:
                setattr(disaster, field, data.get(field))
            disaster.tags = disaster.tags or []
            now = utcnow()
            disaster.updated_at = now
            disaster.audit_trail = [
                *(disaster.audit_trail or []),
                {
                    "action": "updated",
                    "user_id": user_id,
                    "timestamp": now.isoformat(),
                    "changes": {f: data.get(f) for f in ("title", "location_name", "description", "tags")},
                },
            ]
            session.flush()
            return disaster.to_dict()

    def delete_disaster(self, disaster_id: str) -> None:
        with self._session(write=True) as session:
            disaster = self._require(session, Disaster, disaster_id, "Disaster")
            for report in session.scalars(select(Report).where(Report.disaster_id == disaster_id)):
                session.delete(report)
            session.delete(disaster)

    # -- reports -----------------------------------------------------------

    def create_report(
        self,
        disaster_id: str,
        user_id: str,
        content: str,
        image_url: str | None = None,
        verification_status: str = "pending",
    ) -> dict:
        with self._session(write=True) as session:
            self._require(session, Disaster, disaster_id, "Disaster")
            report = Report(
                disaster_id=disaster_id,
                user_id=user_id,
                content=content,
                image_url=image_url,
                verification_status=verification_status,
            )
            session.add(report)
            session.flush()
            return report.to_dict()

    def list_reports(self, disaster_id: str) -> list[dict]:
        with self._session() as session:
            self._require(session, Disaster, disaster_id, "Disaster")
            rows = session.scalars(
                select(Report).where(Report.disaster_id == disaster_id).order_by(Report.created_at.desc())
            )
            return [r.to_dict() for r in rows]

    # -- resources ---------------------------------------------------------

    def create_resources(self, items: list[dict]) -> list[dict]:
        with self._session(write=True) as session:
            resources = [Resource(**{f: item.get(f) for f in RESOURCE_FIELDS}) for item in items]
            session.add_all(resources)
            session.flush()
            return [r.to_dict() for r in resources]

    def create_resource(self, data: dict) -> dict:
        return self.create_resources([data])[0]

    def list_resources(self, disaster_id: str | None = None, type: str | None = None) -> list[dict]:
        with self._session() as session:
            return [r.to_dict() for r in self._query_resources(session, disaster_id, type)]

    def _query_resources(self, session: Session, disaster_id: str | None, type: str | None) -> list[Resource]:
        stmt = select(Resource).order_by(Resource.created_at.desc())
        if disaster_id:
            stmt = stmt.where(Resource.disaster_id == disaster_id)
        if type:
            stmt = stmt.where(Resource.type == type)
        return list(session.scalars(stmt))

    def nearby_resources(
        self,
        lat: float,
        lon: float,
        radius_km: float = 10.0,
        type: str | None = None,
        disaster_id: str | None = None,
    ) -> list[dict]:
        with self._session() as session:
            rows = self._query_resources(session, disaster_id, type)
            return [r.to_dict() for r in within_radius(rows, lat, lon, radius_km)]

    def resource_types(self) -> list[str]:
        with self._session() as session:
            types = session.scalars(select(Resource.type).where(Resource.type.is_not(None)).distinct())
            return sorted(set(types))

    def get_resource(self, resource_id: str) -> dict:
        with self._session() as session:
            return self._require(session, Resource, resource_id, "Resource").to_dict()

    def update_resource(self, resource_id: str, data: dict) -> dict:
        with self._session(write=True) as session:
            resource = self._require(session, Resource, resource_id, "Resource")
            for field in RESOURCE_FIELDS:
                setattr(resource, field, data.get(field))
            session.flush()
            return resource.to_dict()

    def delete_resource(self, resource_id: str) -> None:
        with self._session(write=True) as session:
            session.delete(self._require(session, Resource, resource_id, "Resource"))
