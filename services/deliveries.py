"""
Delivery Assignment Ledger

Keeps one DeliveryLog row per subscription per outlet-local day and moves it
forward through the delivery states. The first action of the day creates the
row; later actions update it in place.
"""

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import DeliveryLog, DeliveryStatusEnum, Subscription, SubscriptionStatusEnum, User, ROLE_ADMIN, ROLE_DELIVERY
from services.errors import ConflictError, InternalError, NotFoundError, ValidationError
from services.notifications import notify
from utils.helpers import outlet_today, utcnow

PENDING = DeliveryStatusEnum.PENDING
READY = DeliveryStatusEnum.READY
ASSIGNED = DeliveryStatusEnum.ASSIGNED
OUT_FOR_DELIVERY = DeliveryStatusEnum.OUT_FOR_DELIVERY
DELIVERED = DeliveryStatusEnum.DELIVERED

# Current status -> statuses it may move to. Repeating the current status is allowed
# (re-assigning an agent, marking ready twice) except once delivered.
ALLOWED_TRANSITIONS = {
    PENDING: {PENDING, READY, ASSIGNED, OUT_FOR_DELIVERY, DELIVERED},
    READY: {READY, ASSIGNED, OUT_FOR_DELIVERY, DELIVERED},
    ASSIGNED: {ASSIGNED, OUT_FOR_DELIVERY, DELIVERED},
    OUT_FOR_DELIVERY: {DELIVERED},
    DELIVERED: set(),
}

# Highest first. Used when several rows describe the same delivery day.
STATUS_PRIORITY = (DELIVERED, OUT_FOR_DELIVERY, ASSIGNED, READY, PENDING)

AGENT_ROLES = (ROLE_DELIVERY, ROLE_ADMIN)


def can_transition(current, target):
    return target in ALLOWED_TRANSITIONS.get(current, set())


def rollup_status(statuses):
    """
    Single display status for a set of delivery statuses (enums or their string values).
    An empty set reads as PENDING.
    """
    present = {DeliveryStatusEnum(status) for status in statuses}
    for status in STATUS_PRIORITY:
        if status in present:
            return status
    return PENDING


def _get_deliverable_subscription(subscription_id):
    subscription = db.session.get(Subscription, subscription_id)
    if subscription is None:
        raise NotFoundError("Subscription not found")
    if subscription.status != SubscriptionStatusEnum.ACTIVE:
        raise ConflictError(f"Subscription {subscription_id} is {subscription.status.value.lower()}; no delivery today.")
    return subscription


def get_delivery_agent(user_id):
    try:
        agent = db.session.get(User, user_id)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error loading delivery partner {user_id}: {e}", exc_info=True)
        raise InternalError("Failed to update delivery status")
    if agent is None:
        raise NotFoundError("Delivery partner not found")
    if agent.role not in AGENT_ROLES:
        raise ValidationError(f"User {user_id} is not a delivery partner.")
    return agent


def list_delivery_partners():
    """Users who can take a delivery (delivery partners, then admins), by name."""
    partners = User.query.filter(User.role.in_(AGENT_ROLES)).order_by(User.name, User.id).all()
    return sorted(partners, key=lambda user: AGENT_ROLES.index(user.role))


def _find_or_create_log(subscription, day, now):
    log = DeliveryLog.query.filter_by(subscription_id=subscription.id, delivery_date=day).with_for_update().first()
    if log is None:
        log = DeliveryLog(
            subscription_id=subscription.id,
            delivery_date=day,
            status=PENDING,
            delivery_time=now, # Planned time until the drop-off is confirmed.
        )
        db.session.add(log)
        db.session.flush() # Surfaces a concurrent insert of the same day as IntegrityError here.
    return log


def _record(subscription_id, target, now, agent=None, latitude=None, longitude=None):
    """
    Moves today's log for the subscription to `target` and commits.

    A concurrent request that created the same day's row first makes our
    insert fail on the unique constraint; the whole step is then retried once
    against the existing row.
    """
    now = now or utcnow()
    day = outlet_today(now)

    for attempt in range(2):
        try:
            subscription = _get_deliverable_subscription(subscription_id)
            log = _find_or_create_log(subscription, day, now)
            if not can_transition(log.status, target):
                raise ConflictError(
                    f"Delivery for subscription {subscription_id} is already {log.status.value}; "
                    f"cannot mark it {target.value}.",
                    details={'status': log.status.value},
                )

            log.status = target
            if agent is not None:
                log.user_id = agent.id
            if target == DELIVERED:
                log.latitude = latitude
                log.longitude = longitude
                log.delivery_time = now
                notify(subscription.user_id, 'Meal Delivered', "Your meal has been delivered. Enjoy!", type='delivery')
            elif target == OUT_FOR_DELIVERY:
                notify(subscription.user_id, 'Out for Delivery', "Your meal is on its way.", type='delivery')
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            if attempt:
                current_app.logger.error(f"Delivery log for subscription {subscription_id} on {day} still conflicting: {e}", exc_info=True)
                raise InternalError("Failed to update delivery status")
            current_app.logger.warning(f"Delivery log for subscription {subscription_id} on {day} created concurrently; retrying as update.")
            continue
        except (NotFoundError, ConflictError) as e:
            db.session.rollback()
            current_app.logger.warning(f"Delivery update rejected for subscription {subscription_id}: {e.message}")
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error updating delivery for subscription {subscription_id}: {e}", exc_info=True)
            raise InternalError("Failed to update delivery status")

        current_app.logger.info(
            f"Delivery {log.id} (subscription {subscription_id}, {day}) -> {target.value}"
            + (f" by agent {agent.id}" if agent is not None else "")
        )
        return log


def mark_ready(subscription_id, now=None):
    """Kitchen has packed today's meal."""
    return _record(subscription_id, READY, now)


def assign_delivery(subscription_id, delivery_user_id, now=None):
    """Assigns today's delivery to an agent (a delivery partner or an admin)."""
    agent = get_delivery_agent(delivery_user_id)
    return _record(subscription_id, ASSIGNED, now, agent=agent)


def mark_out_for_delivery(subscription_id, delivery_user_id, now=None):
    """Agent has picked up today's meal; the customer is told it is on its way."""
    agent = get_delivery_agent(delivery_user_id)
    return _record(subscription_id, OUT_FOR_DELIVERY, now, agent=agent)


def confirm_delivered(subscription_id, delivery_user_id, latitude, longitude, now=None):
    """
    Agent confirms the drop-off at (latitude, longitude).
    delivery_time becomes the actual delivery time.
    """
    if latitude is None or longitude is None:
        raise ValidationError("Latitude and longitude are required to confirm a delivery.")
    agent = get_delivery_agent(delivery_user_id)
    return _record(subscription_id, DELIVERED, now, agent=agent, latitude=latitude, longitude=longitude)


def get_delivery_queue(day=None):
    """
    Subscriptions due for delivery on `day` (outlet-local, default today) with customer details
    and the day's delivery status.

    Returns:
        list[dict]
    """
    day = day or outlet_today()
    rows = db.session.query(Subscription, User).join(User, Subscription.user_id == User.id).filter(
        Subscription.status == SubscriptionStatusEnum.ACTIVE,
        Subscription.start_date <= day,
        Subscription.end_date > day,
    ).order_by(Subscription.id).all()

    logs_by_subscription = {}
    if rows:
        logs = DeliveryLog.query.filter(
            DeliveryLog.delivery_date == day,
            DeliveryLog.subscription_id.in_([subscription.id for subscription, _ in rows]),
        ).all()
        for log in logs:
            logs_by_subscription.setdefault(log.subscription_id, []).append(log)

    queue = []
    for subscription, customer in rows:
        logs = logs_by_subscription.get(subscription.id, [])
        agent_ids = [log.user_id for log in logs if log.user_id]
        queue.append({
            'subscription': subscription.to_dict(),
            'customer': {
                'id': customer.id,
                'name': customer.name,
                'phone': customer.phone,
                'address': subscription.delivery_address or customer.address,
            },
            'delivery_date': day.isoformat(),
            'delivery_status': rollup_status(log.status for log in logs).value,
            'delivery_user_id': agent_ids[0] if agent_ids else None,
        })
    return queue


def get_delivery_history(day=None, delivery_user_id=None):
    """Delivery logs for `day` (default today), optionally only one agent's."""
    day = day or outlet_today()
    query = DeliveryLog.query.filter_by(delivery_date=day)
    if delivery_user_id is not None:
        query = query.filter_by(user_id=delivery_user_id)
    return query.order_by(DeliveryLog.delivery_time.desc(), DeliveryLog.id.desc()).all()


def get_customer_delivery_status(user_id, now=None):
    """Today's status across all of a customer's subscriptions."""
    day = outlet_today(now)
    logs = DeliveryLog.query.join(Subscription, DeliveryLog.subscription_id == Subscription.id).filter(
        Subscription.user_id == user_id,
        DeliveryLog.delivery_date == day,
    ).all()
    return rollup_status(log.status for log in logs)
