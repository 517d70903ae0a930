"""
Reminder contacts: channel status and Telegram linking.

For Telegram, the user requests a one-time token, sends it to the bot, and the bot posts
it back together with the chat id.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from subtracker.core.auth_dependency import get_current_user_id, get_db, verify_dispatch_token
from subtracker.db.column_types import utcnow
from subtracker.schemas.contact import (
    ContactStatusResponse,
    LinkTokenResponse,
    LinkContactRequest,
    LinkContactResponse,
)
from subtracker.schemas.notification import ErrorResponse
from subtracker.services.contact_service import create_link_token, get_contact_status, link_telegram_contact

router = APIRouter(prefix="/contacts", tags=["Contacts"])


@router.get("/status", response_model=ContactStatusResponse)
def contact_status(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ContactStatusResponse(**get_contact_status(db, user_id))


@router.post("/telegram/link-token", response_model=LinkTokenResponse)
def issue_link_token(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    link_token = create_link_token(db, user_id, utcnow())
    return LinkTokenResponse(ok=True, token=link_token.token, expires_at=link_token.expires_at)


@router.post(
    "/telegram/link",
    response_model=LinkContactResponse,
    responses={401: {"model": ErrorResponse}},
    dependencies=[Depends(verify_dispatch_token)],
)
def link_contact(
    request: LinkContactRequest,
    db: Session = Depends(get_db),
):
    """Called by the Telegram bot once a user shares their link token."""
    link_telegram_contact(db, request.token, request.chat_id, utcnow())
    return LinkContactResponse(ok=True, message="Telegram account linked.")
