"""
Subscription endpoints. All operations are scoped to the caller's user id.
"""
from fastapi import APIRouter, Depends, Body, status
from sqlalchemy.orm import Session

from subtracker.core.auth_dependency import get_current_user_id, get_db
from subtracker.schemas.notification import ErrorResponse
from subtracker.schemas.subscription import (
    SubscriptionCreate,
    SubscriptionUpdate,
    SubscriptionResponse,
    SubscriptionListResponse,
)
from subtracker.services import subscription_service

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])


@router.get("", response_model=SubscriptionListResponse)
def list_subscriptions(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    subs = subscription_service.list_subscriptions(db, user_id)
    return SubscriptionListResponse(
        subscriptions=[SubscriptionResponse.model_validate(s) for s in subs],
        total=len(subs),
    )


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
def create_subscription(
    request: SubscriptionCreate = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create a subscription and schedule its reminder."""
    sub = subscription_service.create_subscription(db, user_id, request)
    return SubscriptionResponse.model_validate(sub)


@router.get("/{subscription_id}", response_model=SubscriptionResponse, responses={404: {"model": ErrorResponse}})
def get_subscription(
    subscription_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    sub = subscription_service.get_subscription(db, user_id, subscription_id)
    return SubscriptionResponse.model_validate(sub)


@router.put("/{subscription_id}", response_model=SubscriptionResponse, responses={404: {"model": ErrorResponse}})
def update_subscription(
    subscription_id: int,
    request: SubscriptionUpdate = Body(...),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Update a subscription; the reminder is rescheduled from the new values."""
    sub = subscription_service.update_subscription(db, user_id, subscription_id, request)
    return SubscriptionResponse.model_validate(sub)


@router.delete(
    "/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
def delete_subscription(
    subscription_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    subscription_service.delete_subscription(db, user_id, subscription_id)
