from sqlalchemy import Column, Integer, String, JSON
from subtracker.db.base import Base
from subtracker.db.column_types import AwareDateTime, utcnow


class AuditLog(Base):
    """Append-only record of user-visible changes (create, update, delete, auto_renew, link_telegram)."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    action = Column(String(32), nullable=False)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(String(64), nullable=True)
    diff_json = Column(JSON, nullable=True)
    created_at = Column(AwareDateTime(), default=utcnow, nullable=False, index=True)
