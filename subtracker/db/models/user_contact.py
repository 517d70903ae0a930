from sqlalchemy import Column, Integer, String, UniqueConstraint
from subtracker.db.base import Base
from subtracker.db.column_types import AwareDateTime, utcnow


class UserContact(Base):
    """Delivery address linked by a user (currently Telegram chat ids)."""
    __tablename__ = "user_contacts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    provider = Column(String(32), nullable=False)  # telegram
    contact_type = Column(String(32), nullable=False, default="chat_id")
    contact_id = Column(String(128), nullable=False)
    created_at = Column(AwareDateTime(), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_user_contacts_user_provider"),
    )
