from uuid import UUID

from pydantic import BaseModel, Field, HttpUrl


class DisasterIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    location_name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    tags: list[str] = []
    lat: float | None = Field(None, ge=-90, le=90)
    lon: float | None = Field(None, ge=-180, le=180)


class ResourceIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    location_name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., min_length=1, max_length=100)
    lat: float | None = Field(None, ge=-90, le=90)
    lon: float | None = Field(None, ge=-180, le=180)
    disaster_id: UUID


class ResourceBulkIn(BaseModel):
    resources: list[ResourceIn] = Field(..., min_length=1)


class ReportIn(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    image_url: HttpUrl | None = None


class GeocodeRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)


class VerifyImageRequest(BaseModel):
    image_url: HttpUrl


class VerifyPostRequest(BaseModel):
    post_id: str | None = None
    platform: str = "twitter"
    content: str = Field(..., min_length=1, max_length=5000)
    image_url: HttpUrl | None = None
