import math
import pytest
from datetime import date, timedelta

from extensions import db
from factories import PASSWORD, create_addon, create_menu_item, create_subscription, create_user
from models import Order, User, ROLE_ADMIN, ROLE_DELIVERY
from utils.geo import EARTH_RADIUS_KM

ORDER_BODY = {
    'protein': 'CHICKEN',
    'days': 12,
    'meals_per_day': 2,
    'start_date': '2026-03-01',
}

def seed_user(app, role='client', with_menu=False):
    """Creates a user (and optionally the CHICKEN menu item); returns (id, email)."""
    with app.app_context():
        if with_menu:
            create_menu_item('CHICKEN', 320)
        user = create_user(role=role)
        return user.id, user.email

def login(client, email):
    response = client.post('/auth/login', json={'email': email, 'password': PASSWORD})
    assert response.status_code == 200
    return response

def test_health(client):
    assert client.get('/health').get_json() == {'status': 'ok'}

def test_register_login_and_me(client):
    response = client.post('/auth/register', json={
        'name': 'Asha Patil', 'email': 'Asha@Example.com',
        'password': 'secret123', 'confirm_password': 'secret123',
    })
    assert response.status_code == 201
    assert response.get_json()['user']['email'] == 'asha@example.com'
    assert response.get_json()['user']['role'] == 'client'

    me = client.get('/auth/me')
    assert me.status_code == 200
    assert me.get_json()['user']['name'] == 'Asha Patil'

    assert client.post('/auth/logout').status_code == 200
    assert client.get('/auth/me').status_code == 401

def test_register_validation_error(client):
    response = client.post('/auth/register', json={'email': 'bad', 'password': 'x'})
    assert response.status_code == 400
    assert 'fields' in response.get_json()

def test_login_wrong_password(app, client):
    _, email = seed_user(app)
    response = client.post('/auth/login', json={'email': email, 'password': 'wrong-password'})
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Invalid email or password. Please try again.'

def test_orders_require_login(client):
    response = client.post('/orders', json=ORDER_BODY)
    assert response.status_code == 401
    assert response.get_json() == {'error': 'Authentication required.'}

def test_place_order_and_list(app, client):
    user_id, email = seed_user(app, with_menu=True)
    login(client, email)

    response = client.post('/orders', json=ORDER_BODY)
    assert response.status_code == 201
    data = response.get_json()
    assert data['order']['total_price'] == 7750
    assert data['order']['status'] == 'PAID'
    assert data['subscription']['status'] == 'ACTIVE'
    assert data['subscription']['end_date'] == '2026-03-13'

    orders = client.get('/orders').get_json()['orders']
    assert [o['id'] for o in orders] == [data['order']['id']]

    active = client.get('/orders/active').get_json()
    assert active['subscription']['id'] == data['subscription']['id']
    assert active['delivery_status'] == 'PENDING'

def test_place_order_missing_fields(app, client):
    _, email = seed_user(app, with_menu=True)
    login(client, email)
    response = client.post('/orders', json={'notes': 'hi'})
    assert response.status_code == 400
    assert response.get_json()['error'] == "Missing required fields: protein, days, start_date, meals_per_day (or meal_types)"

def test_place_order_out_of_area(app, client):
    _, email = seed_user(app, with_menu=True)
    login(client, email)
    body = dict(ORDER_BODY, delivery_lat=app.config['OUTLET_LAT'] + math.degrees(50 / EARTH_RADIUS_KM),
                delivery_lng=app.config['OUTLET_LNG'])
    response = client.post('/orders', json=body)
    assert response.status_code == 400
    data = response.get_json()
    assert "You are 50.0km away, but we only deliver within 5km." in data['error']
    assert data['distance_km'] == 50.0
    with app.app_context():
        assert Order.query.count() == 0

def test_duplicate_order_is_409(app, client):
    _, email = seed_user(app, with_menu=True)
    login(client, email)
    assert client.post('/orders', json=ORDER_BODY).status_code == 201
    assert client.post('/orders', json=ORDER_BODY).status_code == 409

def test_quote(app, client):
    _, email = seed_user(app, with_menu=True)
    login(client, email)
    response = client.post('/orders/quote', json={'protein': 'CHICKEN', 'days': 12, 'meals_per_day': 2})
    assert response.get_json() == {'base_plan_price': 7450, 'addon_total': 0, 'delivery_fee': 300, 'grand_total': 7750}

def test_toggle_and_cancel(app, client):
    user_id, email = seed_user(app)
    with app.app_context():
        subscription_id = create_subscription(db.session.get(User, user_id)).id
    login(client, email)

    response = client.post(f'/subscriptions/{subscription_id}/toggle')
    assert response.status_code == 200
    assert response.get_json()['subscription']['status'] == 'PAUSED'

    response = client.post(f'/subscriptions/{subscription_id}/cancel', json={'reason': 'Travelling'})
    assert response.status_code == 200
    assert response.get_json()['subscription']['status'] == 'CANCELLED'
    assert response.get_json()['subscription']['cancellation_reason'] == 'Travelling'

    assert client.post(f'/subscriptions/{subscription_id}/toggle').status_code == 409
    assert client.post('/subscriptions/9999/toggle').status_code == 404

def test_customer_cannot_use_delivery_endpoints(app, client):
    _, email = seed_user(app)
    login(client, email)
    assert client.post('/delivery/ready', json={'subscription_id': 1}).status_code == 403
    assert client.get('/admin/settings/service-area').status_code == 403

def test_admin_and_agent_delivery_flow(app, client):
    with app.app_context():
        customer = create_user()
        subscription_id = create_subscription(customer, days=30, start_date=date.today() - timedelta(days=2)).id
        admin = create_user(role=ROLE_ADMIN)
        agent = create_user(role=ROLE_DELIVERY)
        admin_email, agent_id, agent_email = admin.email, agent.id, agent.email

    login(client, admin_email)
    assert client.post('/delivery/ready', json={'subscription_id': subscription_id}).status_code == 200
    response = client.post('/delivery/assign', json={'subscription_id': subscription_id, 'delivery_user_id': agent_id})
    assert response.status_code == 200
    assert response.get_json()['delivery']['status'] == 'ASSIGNED'
    client.post('/auth/logout')

    login(client, agent_email)
    assert client.post('/delivery/assign', json={'subscription_id': subscription_id, 'delivery_user_id': agent_id}).status_code == 403
    assert client.post('/delivery/out-for-delivery', json={'subscription_id': subscription_id}).status_code == 200
    response = client.post('/delivery/confirm', json={'subscription_id': subscription_id, 'latitude': 18.66, 'longitude': 73.85})
    assert response.status_code == 200
    assert response.get_json()['delivery']['status'] == 'DELIVERED'

    response = client.post('/delivery/confirm', json={'subscription_id': subscription_id, 'latitude': 18.66, 'longitude': 73.85})
    assert response.status_code == 409

    history = client.get('/delivery/history').get_json()['deliveries']
    assert [d['subscription_id'] for d in history] == [subscription_id]

def test_admin_service_area_settings(app, client):
    _, email = seed_user(app, role=ROLE_ADMIN)
    login(client, email)
    assert client.get('/admin/settings/service-area').get_json()['service_radius_km'] == 5.0

    response = client.put('/admin/settings/service-area', json={'service_radius_km': 8})
    assert response.status_code == 200
    assert response.get_json()['service_radius_km'] == 8.0

    assert client.put('/admin/settings/service-area', json={'service_radius_km': -1}).status_code == 400

def test_admin_subscription_update(app, client):
    with app.app_context():
        subscription_id = create_subscription(create_user()).id
        admin_email = create_user(role=ROLE_ADMIN).email
    login(client, admin_email)

    response = client.patch(f'/admin/subscriptions/{subscription_id}', json={'pauses_remaining': 4, 'end_date': '2026-02-01'})
    assert response.status_code == 200
    assert response.get_json()['subscription']['pauses_remaining'] == 4
    assert response.get_json()['subscription']['end_date'] == '2026-02-01'

    listed = client.get('/admin/subscriptions?status=active').get_json()['subscriptions']
    assert [s['id'] for s in listed] == [subscription_id]
    assert client.get('/admin/subscriptions?status=bogus').status_code == 400

def test_admin_is_notified_of_new_orders(app, client):
    with app.app_context():
        create_menu_item('CHICKEN', 320)
        customer_email = create_user().email
        admin_email = create_user(role=ROLE_ADMIN).email

    login(client, customer_email)
    client.post('/orders', json=ORDER_BODY)
    client.post('/auth/logout')

    login(client, admin_email)
    data = client.get('/notifications').get_json()
    assert data['unread'] == 1
    notification_id = data['notifications'][0]['id']
    assert data['notifications'][0]['title'] == 'New Order'

    response = client.post(f'/notifications/{notification_id}/read')
    assert response.get_json()['notification']['is_read'] is True
    assert client.get('/notifications').get_json()['unread'] == 0

def test_seed_command_is_idempotent(app, client):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['seed'])
    assert 'Seeded 3 setting(s) and 3 catalog item(s).' in result.output
    result = runner.invoke(args=['seed'])
    assert 'Seeded 0 setting(s) and 0 catalog item(s).' in result.output

def test_public_catalog_and_service_area(app, client):
    with app.app_context():
        create_menu_item('CHICKEN', 320)
        kefir_id = create_addon().id

    menu = client.get('/menu')
    assert menu.status_code == 200
    assert [item['name'] for item in menu.get_json()['menu']] == ['CHICKEN']
    assert [addon['id'] for addon in client.get('/addons').get_json()['addons']] == [kefir_id]

    area = client.get('/settings/service-area').get_json()
    assert area['service_radius_km'] == 5.0
    assert area['outlet_lat'] == app.config['OUTLET_LAT']

def test_admin_lists_delivery_partners(app, client):
    with app.app_context():
        create_user()
        agent_id = create_user(role=ROLE_DELIVERY, name='Ravi').id
        admin_email = create_user(role=ROLE_ADMIN, name='Kitchen Admin').email
    login(client, admin_email)
    partners = client.get('/delivery/partners').get_json()['partners']
    assert [p['id'] for p in partners][0] == agent_id
    assert {p['role'] for p in partners} == {ROLE_DELIVERY, ROLE_ADMIN}

def test_overlong_plan_is_rejected(app, client):
    _, email = seed_user(app, with_menu=True)
    login(client, email)
    response = client.post('/orders', json=dict(ORDER_BODY, days=5_000_000))
    assert response.status_code == 400
    with app.app_context():
        assert Order.query.count() == 0
