"""Mock authentication: the caller picks a demo user with the X-User-Id header."""

from dataclasses import dataclass

from fastapi import Header

from errors import PermissionDeniedError


@dataclass(frozen=True)
class User:
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


MOCK_USERS = {
    "u1": User(id="u1", role="admin"),
    "u2": User(id="u2", role="contributor"),
}
DEFAULT_USER_ID = "u1"


async def current_user(x_user_id: str | None = Header(None)) -> User:
    user_id = (x_user_id or DEFAULT_USER_ID).strip() or DEFAULT_USER_ID
    return MOCK_USERS.get(user_id, User(id=user_id, role="contributor"))


def ensure_owner(record: dict, user: User) -> None:
    """Owners and admins may modify a record."""
    if record.get("owner_id") != user.id and not user.is_admin:
        raise PermissionDeniedError()
