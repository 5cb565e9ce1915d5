from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from forms import parse_order_request, parse_price_quote_request
from services.deliveries import get_customer_delivery_status
from services.orders import create_order, get_active_subscription, list_user_orders, quote_price

# Blueprint for ordering meal plans.
orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


def _price_dict(price):
    return {
        'base_plan_price': price.base_plan_price,
        'addon_total': price.addon_total,
        'delivery_fee': price.delivery_fee,
        'grand_total': price.grand_total,
    }


@orders_bp.route('', methods=['POST'])
@login_required
def place_order():
    """
    Places an order for the logged-in customer and starts its subscription.

    Body (JSON): protein, days, start_date (YYYY-MM-DD), meals_per_day and/or meal_types,
    optional delivery_lat/delivery_lng/delivery_address, addons, notes.
    Errors are raised as ServiceError and rendered by the app-level handler.
    """
    order_request = parse_order_request(request.get_json(silent=True))
    order = create_order(current_user.id, order_request)
    return jsonify({
        'order': order.to_dict(),
        'subscription': order.subscription.to_dict(),
    }), 201


@orders_bp.route('/quote', methods=['POST'])
@login_required
def quote():
    """Prices a plan without placing the order."""
    quote_request = parse_price_quote_request(request.get_json(silent=True))
    return jsonify(_price_dict(quote_price(quote_request)))


@orders_bp.route('', methods=['GET'])
@login_required
def my_orders():
    return jsonify({'orders': [order.to_dict() for order in list_user_orders(current_user.id)]})


@orders_bp.route('/active', methods=['GET'])
@login_required
def active_subscription():
    """The customer's current (active or paused) subscription and today's delivery status."""
    subscription = get_active_subscription(current_user.id)
    return jsonify({
        'subscription': subscription.to_dict() if subscription else None,
        'delivery_status': get_customer_delivery_status(current_user.id).value,
    })
