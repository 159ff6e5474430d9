"""Profile request/response schemas."""
from typing import Optional
from datetime import datetime
from pydantic import field_validator
from app.schemas.base import CamelModel, CamelORMModel
from app.schemas.tag import TagResponse


class ProfileUpdate(CamelModel):
    description: str


class ProfileResponse(CamelORMModel):
    profile_id: str
    description: Optional[str] = None
    size_bytes: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    tags: list[TagResponse] = []

    @field_validator("tags", mode="before")
    @classmethod
    def none_to_list(cls, v):
        return v if v is not None else []


class ProfileListResponse(CamelModel):
    profiles: list[ProfileResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class AvailableProfile(CamelModel):
    name: str
