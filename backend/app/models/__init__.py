"""Import all models so SQLAlchemy metadata knows about them."""
from app.models.base import Base
from app.models.profile import Profile
from app.models.tag import Tag, ProfileTag

__all__ = ["Base", "Profile", "Tag", "ProfileTag"]
