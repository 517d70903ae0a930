from sqlalchemy import Column, String
from subtracker.db.base import Base
from subtracker.db.column_types import AwareDateTime


class TelegramLinkToken(Base):
    __tablename__ = "telegram_link_tokens"

    token = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    expires_at = Column(AwareDateTime(), nullable=False)
