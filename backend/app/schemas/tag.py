"""Tag request/response schemas."""
from datetime import datetime
from pydantic import field_validator
from app.schemas.base import CamelModel, CamelORMModel


class TagAssign(CamelModel):
    tag_name: str

    @field_validator("tag_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("tagName must not be empty")
        return v


class TagResponse(CamelORMModel):
    id: int
    name: str
    created_at: datetime
