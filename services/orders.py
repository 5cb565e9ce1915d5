"""
Order Creation Workflow

Validates an order, prices it and writes the Order together with its
Subscription in a single transaction. Either both rows are committed or
neither is. Admins are notified after the commit.
"""

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import AddOn, MenuItem, Order, OrderStatusEnum, Subscription, SubscriptionStatusEnum, User
from services.errors import ConflictError, InternalError, NotFoundError, OutOfServiceAreaError, ServiceError, ValidationError
from services.notifications import notify_admins
from services.settings import get_service_area
from utils.geo import check_service_area
from utils.helpers import utcnow
from utils.pricing import FREQUENCY_DAILY, compute_price_breakdown

MEAL_TYPE_ORDER = ('LUNCH', 'DINNER')

# Meal types assumed when the request only says how many meals per day.
DEFAULT_MEAL_TYPES = {
    1: ['LUNCH'],
    2: ['LUNCH', 'DINNER'],
}

# Plans longer than this many days come with pauses.
PAUSE_ELIGIBLE_AFTER_DAYS = 7


def resolve_meal_types(meals_per_day, meal_types):
    """
    Returns the meal types for the plan. Explicit meal types win; meals_per_day is then len(meal_types).

    Raises:
        ValidationError: Neither is usable.
    """
    if meal_types:
        chosen = {meal_type.upper() for meal_type in meal_types}
        unknown = chosen.difference(MEAL_TYPE_ORDER)
        if unknown:
            raise ValidationError(f"Unknown meal type(s): {', '.join(sorted(unknown))}. Choose from LUNCH, DINNER.")
        return [meal_type for meal_type in MEAL_TYPE_ORDER if meal_type in chosen]
    if meals_per_day in DEFAULT_MEAL_TYPES:
        return list(DEFAULT_MEAL_TYPES[meals_per_day])
    raise ValidationError("Meals per day must be 1 or 2.")


def get_menu_item(protein):
    """Exact-name lookup. An unknown protein is a hard error; there is no fallback price."""
    menu_item = MenuItem.query.filter_by(name=protein).first()
    if menu_item is None:
        raise NotFoundError(f"Menu item '{protein}' not found")
    return menu_item


def list_menu_items():
    return MenuItem.query.order_by(MenuItem.name).all()


def list_addons():
    """Every add-on a customer can attach to a plan, cheapest first."""
    return AddOn.query.order_by(AddOn.price, AddOn.id).all()


def load_addon_catalog(selections):
    """
    Loads the add-ons referenced by `selections`, keyed by id as a string.
    Unknown ids are simply absent; pricing skips them.

    Raises:
        ValidationError: An add-on ordered daily that only allows one-off purchase.
    """
    ids = []
    for addon_id, selection in selections.items():
        if selection.quantity > 0 and str(addon_id).isdigit():
            ids.append(int(addon_id))
    if not ids:
        return {}

    catalog = {str(addon.id): addon for addon in AddOn.query.filter(AddOn.id.in_(ids)).all()}
    for addon_id, selection in selections.items():
        addon = catalog.get(str(addon_id))
        if addon is not None and selection.quantity > 0 and selection.frequency == FREQUENCY_DAILY and not addon.allow_subscription:
            raise ValidationError(f"{addon.name} can only be added once, not daily.")
    return catalog


def quote_price(quote_request):
    """
    Prices a plan without writing anything, so a client can preview the total.

    Args:
        quote_request: Object with protein, days, meals_per_day, meal_types and addons
                       (forms.PriceQuoteRequest or forms.OrderRequest).

    Returns:
        utils.pricing.PriceBreakdown
    """
    meal_types = resolve_meal_types(quote_request.meals_per_day, quote_request.meal_types)
    menu_item = get_menu_item(quote_request.protein)
    catalog = load_addon_catalog(quote_request.addons)
    return compute_price_breakdown(menu_item.price, quote_request.days, len(meal_types), quote_request.addons, catalog)


def _check_service_area(order_request):
    """Runs only when the request carries a delivery location; otherwise the order is not gated."""
    if order_request.delivery_lat is None or order_request.delivery_lng is None:
        return None
    area = get_service_area()
    within, distance_km = check_service_area(
        area.outlet_lat, area.outlet_lng,
        order_request.delivery_lat, order_request.delivery_lng,
        area.service_radius_km,
    )
    if not within:
        raise OutOfServiceAreaError(distance_km, area.service_radius_km)
    return distance_km


def _check_duplicate(user_id, protein, days, now):
    window_seconds = current_app.config.get('DUPLICATE_ORDER_WINDOW_SECONDS', 10)
    cutoff = now - timedelta(seconds=window_seconds)
    duplicate = Order.query.filter(
        Order.user_id == user_id,
        Order.protein == protein,
        Order.days == days,
        Order.created_at >= cutoff,
    ).first()
    if duplicate is not None:
        raise ConflictError(
            f"An identical order (#{duplicate.id}) was placed less than {window_seconds} seconds ago.",
            details={'order_id': duplicate.id},
        )


def _serialize_addons(selections):
    return {
        addon_id: {'quantity': selection.quantity, 'frequency': selection.frequency}
        for addon_id, selection in selections.items()
        if selection.quantity > 0
    }


def create_order(user_id, order_request, now=None):
    """
    Creates a paid Order and its ACTIVE Subscription.

    Args:
        user_id (int): The customer placing the order.
        order_request (forms.OrderRequest): Validated request.
        now (datetime, optional): Naive UTC "current time"; defaults to utcnow().

    Returns:
        Order: The committed order; `order.subscription` is its subscription.

    Raises:
        ValidationError, NotFoundError, ConflictError: Rejected before anything is written.
        InternalError: Persistence failed and the transaction was rolled back.
    """
    now = now or utcnow()
    try:
        customer = db.session.get(User, user_id)
        if customer is None:
            raise NotFoundError("User not found")

        meal_types = resolve_meal_types(order_request.meals_per_day, order_request.meal_types)
        meals_per_day = len(meal_types)
        _check_service_area(order_request)
        menu_item = get_menu_item(order_request.protein)
        catalog = load_addon_catalog(order_request.addons)
        _check_duplicate(user_id, order_request.protein, order_request.days, now)

        price = compute_price_breakdown(menu_item.price, order_request.days, meals_per_day, order_request.addons, catalog)
        addons = _serialize_addons(order_request.addons)
        end_date = order_request.start_date + timedelta(days=order_request.days)

        order = Order(
            user_id=user_id,
            protein=menu_item.name,
            days=order_request.days,
            meals_per_day=meals_per_day,
            meal_types=meal_types,
            addons=addons,
            notes=order_request.notes,
            start_date=order_request.start_date,
            total_price=price.grand_total,
            status=OrderStatusEnum.PAID, # No payment gateway yet; every order is treated as paid.
            delivery_lat=order_request.delivery_lat,
            delivery_lng=order_request.delivery_lng,
            delivery_address=order_request.delivery_address,
            created_at=now,
        )
        db.session.add(order)
        db.session.flush() # Assigns order.id for the subscription's foreign key.

        pauses = current_app.config.get('PAUSES_FOR_LONG_PLANS', 2) if order_request.days > PAUSE_ELIGIBLE_AFTER_DAYS else 0
        subscription = Subscription(
            user_id=user_id,
            order_id=order.id,
            start_date=order_request.start_date,
            end_date=end_date,
            status=SubscriptionStatusEnum.ACTIVE,
            days_remaining=order_request.days,
            pauses_remaining=pauses,
            protein=menu_item.name,
            meals_per_day=meals_per_day,
            meal_types=meal_types,
            addons=addons,
            delivery_address=order_request.delivery_address or customer.address,
        )
        db.session.add(subscription)
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        current_app.logger.warning(f"Order rejected for user {user_id} ({order_request.protein}, {order_request.days} days): {e.message}")
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating order for user {user_id}: {e}", exc_info=True)
        raise InternalError("Failed to create order")
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Unexpected error creating order for user {user_id}: {e}", exc_info=True)
        raise InternalError("Failed to create order")

    current_app.logger.info(
        f"Order {order.id} created for user {user_id}: {order.protein} x {order.days} days, "
        f"{meals_per_day} meal(s)/day, total {order.total_price} "
        f"(base {price.base_plan_price}, add-ons {price.addon_total}, delivery {price.delivery_fee})."
    )

    notify_admins(
        'New Order',
        f"{customer.name} ordered {order.protein} ({', '.join(meal_types)}) for {order.days} days.",
        type='info',
    )
    return order


def list_user_orders(user_id):
    """The user's orders, newest first."""
    return Order.query.filter_by(user_id=user_id).order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_active_subscription(user_id):
    """Most recent ACTIVE or PAUSED subscription for the user, or None."""
    return Subscription.query.filter(
        Subscription.user_id == user_id,
        Subscription.status.in_([SubscriptionStatusEnum.ACTIVE, SubscriptionStatusEnum.PAUSED]),
    ).order_by(Subscription.created_at.desc(), Subscription.id.desc()).first()
