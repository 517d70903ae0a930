"""
Recipient lookup and Telegram contact linking.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from fastapi import status
from sqlalchemy.orm import Session

from subtracker.core import config
from subtracker.core.errors import ErrorCode, ServiceError
from subtracker.db.models.profile import Profile
from subtracker.db.models.telegram_link_token import TelegramLinkToken
from subtracker.db.models.user_contact import UserContact
from subtracker.services.audit_service import record_audit

logger = logging.getLogger(__name__)

TELEGRAM_PROVIDER = "telegram"


def get_telegram_chat_id(db: Session, user_id: str) -> Optional[str]:
    """Chat id the user linked through the bot, if any."""
    contact = db.query(UserContact).filter(
        UserContact.user_id == user_id,
        UserContact.provider == TELEGRAM_PROVIDER,
    ).first()
    return contact.contact_id if contact else None


def get_account_email(db: Session, user_id: str) -> Optional[str]:
    """Registered email address of the account, if any."""
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile and profile.email:
        return profile.email
    return None


def get_profile_timezone(db: Session, user_id: str) -> Optional[str]:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    return profile.timezone if profile else None


def create_link_token(db: Session, user_id: str, now: datetime) -> TelegramLinkToken:
    """
    Issue a one-time token the user hands to the Telegram bot.

    Any earlier tokens of the user are discarded.
    """
    db.query(TelegramLinkToken).filter(TelegramLinkToken.user_id == user_id).delete()

    link_token = TelegramLinkToken(
        token=secrets.token_urlsafe(12),
        user_id=user_id,
        expires_at=now + timedelta(minutes=config.LINK_TOKEN_TTL_MINUTES),
    )
    db.add(link_token)
    db.commit()
    db.refresh(link_token)

    logger.info(f"Telegram link token issued: user_id={user_id}, expires_at={link_token.expires_at.isoformat()}")
    return link_token


def link_telegram_contact(db: Session, token: str, chat_id: str, now: datetime) -> UserContact:
    """
    Bind a Telegram chat to the user that owns `token`.

    Raises:
        ServiceError 401: Token unknown or expired
    """
    link_token = db.query(TelegramLinkToken).filter(
        TelegramLinkToken.token == token,
        TelegramLinkToken.expires_at >= now,
    ).first()

    if not link_token:
        logger.warning("Invalid or expired Telegram link token presented")
        raise ServiceError(
            ErrorCode.FORBIDDEN,
            "Invalid or expired token.",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    user_id = link_token.user_id
    contact = db.query(UserContact).filter(
        UserContact.user_id == user_id,
        UserContact.provider == TELEGRAM_PROVIDER,
    ).first()

    if contact:
        contact.contact_id = str(chat_id)
    else:
        contact = UserContact(
            user_id=user_id,
            provider=TELEGRAM_PROVIDER,
            contact_type="chat_id",
            contact_id=str(chat_id),
        )
        db.add(contact)

    db.delete(link_token)
    db.commit()
    db.refresh(contact)

    record_audit(db, user_id, "link_telegram", "user_contact", user_id, {"chat_id": str(chat_id)})
    logger.info(f"Telegram contact linked: user_id={user_id}")
    return contact


def get_contact_status(db: Session, user_id: str) -> dict:
    """Whether a Telegram chat is linked and an email address is on file."""
    return {
        "telegram_linked": get_telegram_chat_id(db, user_id) is not None,
        "email_present": get_account_email(db, user_id) is not None,
    }
