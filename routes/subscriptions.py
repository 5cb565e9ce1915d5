from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from forms import CancelSubscriptionForm, validate_json
from services.subscriptions import cancel_subscription, toggle_subscription

# Blueprint for the customer's own subscription actions (pause/resume, cancel).
subscriptions_bp = Blueprint('subscriptions', __name__, url_prefix='/subscriptions')


@subscriptions_bp.route('/<int:subscription_id>/toggle', methods=['POST'])
@login_required
def toggle(subscription_id):
    """Pauses an active subscription or resumes a paused one."""
    subscription = toggle_subscription(subscription_id, current_user.id)
    return jsonify({'subscription': subscription.to_dict()})


@subscriptions_bp.route('/<int:subscription_id>/cancel', methods=['POST'])
@login_required
def cancel(subscription_id):
    """Cancels the subscription. Body (JSON, optional): reason."""
    form = validate_json(CancelSubscriptionForm, request.get_json(silent=True) or {})
    subscription = cancel_subscription(subscription_id, current_user.id, form.reason.data)
    return jsonify({'subscription': subscription.to_dict()})
