"""Tag and ProfileTag models - named labels, many-to-many with profiles."""
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    profile_tags = relationship(
        "ProfileTag", back_populates="tag",
        cascade="all, delete-orphan", passive_deletes=True,
    )


class ProfileTag(Base):
    __tablename__ = "profile_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("profiles.profile_id", ondelete="CASCADE"), nullable=False, index=True
    )
    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    profile = relationship("Profile", back_populates="profile_tags")
    tag = relationship("Tag", back_populates="profile_tags")

    __table_args__ = (
        UniqueConstraint("profile_id", "tag_id", name="uq_profile_tag"),
    )
