"""Profile model - one backed-up browser profile (bytes live in the backup folder)."""
from sqlalchemy import String, Text, BigInteger, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, TimestampMixin


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    profile_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Join rows go with the profile
    profile_tags = relationship(
        "ProfileTag", back_populates="profile",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    tags = relationship(
        "Tag", secondary="profile_tags", order_by="Tag.name", viewonly=True,
    )

    __table_args__ = (
        Index("idx_profiles_created_at", "created_at"),
    )
