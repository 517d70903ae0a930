from sqlalchemy import Column, String
from subtracker.db.base import Base
from subtracker.db.column_types import AwareDateTime, utcnow


class Profile(Base):
    """Account profile: reminder email address and default timezone."""
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)  # opaque user id from the identity provider
    email = Column(String(320), nullable=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(AwareDateTime(), default=utcnow, nullable=False)
    updated_at = Column(AwareDateTime(), default=utcnow, onupdate=utcnow, nullable=False)
