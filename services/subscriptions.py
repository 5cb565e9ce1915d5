"""
Subscription Lifecycle Manager

Pause, resume and cancel transitions for a customer's subscription, plus the
admin override of its entitlements. Each transition locks the row, applies
every field change and commits once.

    ACTIVE --pause (pauses_remaining > 0)--> PAUSED
    PAUSED --resume (end_date += ceil(days paused))--> ACTIVE
    ACTIVE | PAUSED --cancel (plan longer than 6 days)--> CANCELLED
"""

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Subscription, SubscriptionPause, SubscriptionStatusEnum
from services.errors import ConflictError, InternalError, NotFoundError, ValidationError
from utils.helpers import ceil_days, utcnow

# Plans must run longer than this many days to be cancellable.
MIN_CANCELLABLE_DURATION_DAYS = 6

DEFAULT_CANCELLATION_REASON = "No reason provided"


def _load_for_update(subscription_id, user_id=None):
    """Row-locked load. A subscription owned by someone else is reported as not found."""
    query = Subscription.query.filter_by(id=subscription_id)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    subscription = query.with_for_update().first()
    if subscription is None:
        raise NotFoundError("Subscription not found")
    return subscription


def _commit(subscription, action):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error trying to {action} subscription {subscription.id}: {e}", exc_info=True)
        raise InternalError(f"Failed to {action} subscription")


def _load_failed(subscription_id, action, error):
    db.session.rollback()
    current_app.logger.error(f"Error loading subscription {subscription_id} to {action} it: {error}", exc_info=True)
    return InternalError(f"Failed to {action} subscription")


def _pause(subscription, now):
    if subscription.pauses_remaining <= 0:
        raise ConflictError("You have no pauses remaining for this plan.", details={'pauses_remaining': 0})
    subscription.status = SubscriptionStatusEnum.PAUSED
    subscription.last_paused_at = now
    subscription.pauses_remaining -= 1


def _resume(subscription, now):
    paused_at = subscription.last_paused_at
    drift_days = ceil_days(now - paused_at) if paused_at else 0
    if paused_at:
        db.session.add(SubscriptionPause(subscription_id=subscription.id, start_date=paused_at, end_date=now))
    subscription.end_date = subscription.end_date + timedelta(days=drift_days)
    subscription.status = SubscriptionStatusEnum.ACTIVE
    subscription.last_paused_at = None
    return drift_days


def toggle_subscription(subscription_id, user_id, now=None):
    """
    Pauses an ACTIVE subscription or resumes a PAUSED one.

    Resuming pushes end_date out by the paused time rounded up to whole days,
    so a customer never loses a day they paid for.

    Args:
        subscription_id (int): Subscription to toggle.
        user_id (int): Requesting customer; must own the subscription.
        now (datetime, optional): Naive UTC "current time"; defaults to utcnow().

    Returns:
        Subscription: The updated subscription.

    Raises:
        NotFoundError: No such subscription for this user.
        ConflictError: Cancelled/expired, or no pauses left.
    """
    now = now or utcnow()
    try:
        subscription = _load_for_update(subscription_id, user_id)
        if subscription.status == SubscriptionStatusEnum.ACTIVE:
            _pause(subscription, now)
            action, detail = 'pause', f"{subscription.pauses_remaining} pause(s) left"
        elif subscription.status == SubscriptionStatusEnum.PAUSED:
            drift_days = _resume(subscription, now)
            action, detail = 'resume', f"end date moved {drift_days} day(s) to {subscription.end_date.isoformat()}"
        else:
            raise ConflictError(f"A {subscription.status.value.lower()} subscription cannot be paused or resumed.")
    except (NotFoundError, ConflictError) as e:
        db.session.rollback() # Release the row lock.
        current_app.logger.warning(f"Toggle rejected for subscription {subscription_id} (user {user_id}): {e.message}")
        raise
    except SQLAlchemyError as e:
        raise _load_failed(subscription_id, 'toggle', e)

    _commit(subscription, action)
    current_app.logger.info(f"Subscription {subscription.id} {action}d by user {user_id}: {detail}.")
    return subscription


def cancel_subscription(subscription_id, user_id, reason=None):
    """
    Cancels a subscription on behalf of its owner.

    Only plans running longer than six days (start to current end date,
    including days added back by resumes) can be cancelled.

    Raises:
        NotFoundError: No such subscription for this user.
        ConflictError: Plan too short, or already cancelled/expired.
    """
    try:
        subscription = _load_for_update(subscription_id, user_id)
        if subscription.status in (SubscriptionStatusEnum.CANCELLED, SubscriptionStatusEnum.EXPIRED):
            raise ConflictError(f"Subscription is already {subscription.status.value.lower()}.")
        duration = subscription.total_duration_days
        if duration <= MIN_CANCELLABLE_DURATION_DAYS:
            raise ConflictError(
                f"Cancellation only available for plans longer than {MIN_CANCELLABLE_DURATION_DAYS} days. "
                f"This plan runs {duration} day(s).",
                details={'duration_days': duration},
            )
    except (NotFoundError, ConflictError) as e:
        db.session.rollback()
        current_app.logger.warning(f"Cancel rejected for subscription {subscription_id} (user {user_id}): {e.message}")
        raise
    except SQLAlchemyError as e:
        raise _load_failed(subscription_id, 'cancel', e)

    subscription.status = SubscriptionStatusEnum.CANCELLED
    subscription.cancellation_reason = (reason or '').strip() or DEFAULT_CANCELLATION_REASON
    subscription.last_paused_at = None # Only PAUSED subscriptions carry a pause timestamp.
    _commit(subscription, 'cancel')
    current_app.logger.info(f"Subscription {subscription.id} cancelled by user {user_id}: {subscription.cancellation_reason}")
    return subscription


def admin_update_subscription(subscription_id, pauses_remaining=None, end_date=None):
    """
    Admin override of the pause allowance and/or end date.

    The end date may only move forward; pauses_remaining must not be negative.
    """
    try:
        subscription = _load_for_update(subscription_id)
        if pauses_remaining is not None and pauses_remaining < 0:
            raise ValidationError("Pauses remaining cannot be negative.")
        if end_date is not None and end_date < subscription.end_date:
            raise ValidationError(
                f"End date can only be extended. Current end date is {subscription.end_date.isoformat()}."
            )
    except (NotFoundError, ValidationError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        raise _load_failed(subscription_id, 'update', e)

    changes = {}
    if pauses_remaining is not None:
        subscription.pauses_remaining = pauses_remaining
        changes['pauses_remaining'] = pauses_remaining
    if end_date is not None:
        subscription.end_date = end_date
        changes['end_date'] = end_date.isoformat()
    _commit(subscription, 'update')
    current_app.logger.info(f"Subscription {subscription.id} updated by admin: {changes}")
    return subscription


def list_subscriptions(status=None):
    """All subscriptions, newest first, optionally filtered by status."""
    query = Subscription.query
    if status is not None:
        query = query.filter_by(status=status)
    return query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()
