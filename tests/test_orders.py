import math
import pytest
from datetime import date, datetime, timedelta
from sqlalchemy.exc import SQLAlchemyError

from factories import create_addon, create_menu_item, create_user
from forms import OrderRequest, PriceQuoteRequest
from models import Notification, Order, OrderStatusEnum, Subscription, SubscriptionStatusEnum, ROLE_ADMIN
from services.errors import ConflictError, InternalError, NotFoundError, OutOfServiceAreaError, ValidationError
from services.orders import (
    create_order, get_active_subscription, list_addons, list_menu_items, list_user_orders, quote_price, resolve_meal_types,
)
from utils.geo import EARTH_RADIUS_KM
from utils.pricing import AddOnSelection

OUTLET_LAT = 18.654949627383616
OUTLET_LNG = 73.84475261136429
NOW = datetime(2026, 2, 20, 9, 30)

def make_request(**overrides):
    values = dict(
        protein='CHICKEN', days=12, meals_per_day=2, meal_types=[], start_date=date(2026, 3, 1),
        delivery_lat=None, delivery_lng=None, delivery_address=None, addons={}, notes=None,
    )
    values.update(overrides)
    return OrderRequest(**values)

def assert_nothing_written():
    assert Order.query.count() == 0
    assert Subscription.query.count() == 0

@pytest.fixture
def customer(db):
    create_menu_item('CHICKEN', 320)
    return create_user(name='Asha Patil')

def test_create_order_happy_path(customer):
    order = create_order(customer.id, make_request(), now=NOW)

    assert order.id is not None
    assert order.status == OrderStatusEnum.PAID
    assert order.total_price == 7450 + 300
    assert order.meal_types == ['LUNCH', 'DINNER']
    assert order.created_at == NOW

    subscription = order.subscription
    assert subscription.status == SubscriptionStatusEnum.ACTIVE
    assert subscription.start_date == date(2026, 3, 1)
    assert subscription.end_date == date(2026, 3, 13)
    assert subscription.days_remaining == 12
    assert subscription.pauses_remaining == 2
    assert subscription.last_paused_at is None
    assert subscription.delivery_address == customer.address

def test_week_long_plan_gets_no_pauses(customer):
    order = create_order(customer.id, make_request(days=7), now=NOW)
    assert order.subscription.pauses_remaining == 0

def test_eight_day_plan_gets_pauses(customer):
    order = create_order(customer.id, make_request(days=8), now=NOW)
    assert order.subscription.pauses_remaining == 2

def test_meal_types_override_meals_per_day(customer):
    order = create_order(customer.id, make_request(meals_per_day=2, meal_types=['DINNER']), now=NOW)
    assert order.meals_per_day == 1
    assert order.meal_types == ['DINNER']
    assert order.total_price == 3725 + 300 # 320 * 12 less 3% = 3724.8

def test_admins_are_notified_after_commit(customer):
    admin = create_user(role=ROLE_ADMIN, name='Kitchen Admin')
    create_order(customer.id, make_request(meal_types=['LUNCH', 'DINNER']), now=NOW)

    notifications = Notification.query.filter_by(user_id=admin.id).all()
    assert len(notifications) == 1
    assert notifications[0].title == 'New Order'
    assert 'Asha Patil' in notifications[0].message
    assert 'CHICKEN' in notifications[0].message
    assert '12 days' in notifications[0].message
    # Customers are not notified of their own order.
    assert Notification.query.filter_by(user_id=customer.id).count() == 0

def test_notification_failure_does_not_undo_order(customer, db, mocker):
    mocker.patch('services.orders.notify_admins', return_value=0)
    order = create_order(customer.id, make_request(), now=NOW)
    assert db.session.get(Order, order.id) is not None

def test_unknown_protein_is_rejected(customer):
    with pytest.raises(NotFoundError) as excinfo:
        create_order(customer.id, make_request(protein='TOFU'), now=NOW)
    assert excinfo.value.message == "Menu item 'TOFU' not found"
    assert_nothing_written()

def test_unknown_user_is_rejected(customer):
    with pytest.raises(NotFoundError):
        create_order(9999, make_request(), now=NOW)
    assert_nothing_written()

def test_out_of_service_area_is_rejected(customer):
    lat = OUTLET_LAT + math.degrees(50 / EARTH_RADIUS_KM)
    with pytest.raises(OutOfServiceAreaError) as excinfo:
        create_order(customer.id, make_request(delivery_lat=lat, delivery_lng=OUTLET_LNG), now=NOW)
    assert "You are 50.0km away, but we only deliver within 5km." in excinfo.value.message
    assert excinfo.value.status_code == 400
    assert_nothing_written()

def test_inside_service_area_is_accepted(customer):
    lat = OUTLET_LAT + math.degrees(1 / EARTH_RADIUS_KM)
    order = create_order(customer.id, make_request(delivery_lat=lat, delivery_lng=OUTLET_LNG, delivery_address='Gate 2'), now=NOW)
    assert order.delivery_lat == lat
    assert order.subscription.delivery_address == 'Gate 2'

def test_service_area_uses_saved_radius(customer):
    from services.settings import update_service_area
    update_service_area(service_radius_km=60)
    lat = OUTLET_LAT + math.degrees(50 / EARTH_RADIUS_KM)
    order = create_order(customer.id, make_request(delivery_lat=lat, delivery_lng=OUTLET_LNG), now=NOW)
    assert order.id is not None

def test_duplicate_within_window_is_rejected(customer):
    first = create_order(customer.id, make_request(), now=NOW)
    with pytest.raises(ConflictError) as excinfo:
        create_order(customer.id, make_request(), now=NOW + timedelta(seconds=5))
    assert excinfo.value.details == {'order_id': first.id}
    assert Order.query.count() == 1

def test_same_order_after_window_is_accepted(customer):
    create_order(customer.id, make_request(), now=NOW)
    create_order(customer.id, make_request(), now=NOW + timedelta(seconds=11))
    assert Order.query.count() == 2
    assert Subscription.query.count() == 2

def test_different_plan_is_not_a_duplicate(customer):
    create_order(customer.id, make_request(days=12), now=NOW)
    create_order(customer.id, make_request(days=14), now=NOW + timedelta(seconds=1))
    assert Order.query.count() == 2

def test_persistence_failure_rolls_back_everything(customer, db, mocker):
    mocker.patch.object(db.session, 'commit', side_effect=SQLAlchemyError('disk full'))
    with pytest.raises(InternalError) as excinfo:
        create_order(customer.id, make_request(), now=NOW)
    assert excinfo.value.message == "Failed to create order"
    mocker.stopall()
    assert_nothing_written()

def test_daily_addon_must_allow_subscription(customer):
    addon = create_addon(name='Brownie', price=80, allow_subscription=False)
    addons = {str(addon.id): AddOnSelection(quantity=1, frequency='daily')}
    with pytest.raises(ValidationError) as excinfo:
        create_order(customer.id, make_request(addons=addons), now=NOW)
    assert 'Brownie' in excinfo.value.message
    assert_nothing_written()

def test_order_with_daily_kefir(customer):
    kefir = create_addon()
    addons = {str(kefir.id): AddOnSelection(quantity=1, frequency='daily')}
    order = create_order(customer.id, make_request(addons=addons), now=NOW)
    assert order.total_price == 7450 + 1069 + 300
    assert order.addons == {str(kefir.id): {'quantity': 1, 'frequency': 'daily'}}

def test_quote_price_thirteen_days_with_kefir(customer):
    kefir = create_addon()
    request = PriceQuoteRequest(
        protein='CHICKEN', days=13, meals_per_day=1, meal_types=[],
        addons={str(kefir.id): AddOnSelection(quantity=1, frequency='daily')},
    )
    price = quote_price(request)
    # 320 * 13 less 5% = 3952; kefir 99 less 20% = 79.2 * 13 = 1029.6
    assert price.base_plan_price == 3952
    assert price.addon_total == 1030
    assert price.delivery_fee == 300
    assert price.grand_total == 5282
    assert_nothing_written()

def test_resolve_meal_types_defaults():
    assert resolve_meal_types(1, []) == ['LUNCH']
    assert resolve_meal_types(2, None) == ['LUNCH', 'DINNER']
    assert resolve_meal_types(None, ['dinner', 'LUNCH', 'DINNER']) == ['LUNCH', 'DINNER']

def test_resolve_meal_types_rejects_bad_input():
    with pytest.raises(ValidationError):
        resolve_meal_types(3, [])
    with pytest.raises(ValidationError):
        resolve_meal_types(None, ['BREAKFAST'])

def test_list_orders_and_active_subscription(customer):
    other = create_user()
    create_order(customer.id, make_request(days=12), now=NOW)
    latest = create_order(customer.id, make_request(days=20), now=NOW + timedelta(minutes=1))
    create_order(other.id, make_request(), now=NOW)

    orders = list_user_orders(customer.id)
    assert [o.id for o in orders] == [latest.id, orders[1].id]
    assert len(orders) == 2

    active = get_active_subscription(customer.id)
    assert active.order_id in {o.id for o in orders}

def test_plan_too_long_for_the_calendar_rolls_back(customer, db):
    with pytest.raises(InternalError) as excinfo:
        create_order(customer.id, make_request(days=5_000_000), now=NOW)
    assert excinfo.value.message == "Failed to create order"
    db.session.commit() # Nothing may be left pending in the session.
    assert_nothing_written()

def test_unexpected_error_after_flush_rolls_back(customer, db, mocker):
    mocker.patch('services.orders.Subscription', side_effect=RuntimeError('boom'))
    with pytest.raises(InternalError):
        create_order(customer.id, make_request(), now=NOW)
    mocker.stopall()
    db.session.commit()
    assert_nothing_written()

def test_list_menu_items_and_addons(customer):
    create_menu_item('PANEER', 300)
    dessert = create_addon(name='Brownie', price=80, allow_subscription=False)
    kefir = create_addon()
    assert [item.name for item in list_menu_items()] == ['CHICKEN', 'PANEER']
    assert [addon.id for addon in list_addons()] == [dessert.id, kefir.id]
