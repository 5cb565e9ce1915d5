from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from forms import DeliveryAssignForm, DeliveryConfirmForm, DeliveryReadyForm, validate_json
from models.user import ROLE_ADMIN, ROLE_DELIVERY
from services.deliveries import (
    assign_delivery, confirm_delivered, get_delivery_history, get_delivery_queue, list_delivery_partners,
    mark_out_for_delivery, mark_ready,
)
from utils.decorators import role_required
from utils.helpers import parse_iso_date

# Blueprint for the daily delivery ledger.
# The kitchen (admin) marks meals ready and assigns agents; agents move them out and confirm drop-off.
delivery_bp = Blueprint('delivery', __name__, url_prefix='/delivery')


def _requested_day():
    """Optional ?date=YYYY-MM-DD; None means today at the outlet."""
    value = request.args.get('date')
    return parse_iso_date(value, 'date') if value else None


@delivery_bp.route('/ready', methods=['POST'])
@login_required
@role_required(ROLE_ADMIN)
def ready():
    form = validate_json(DeliveryReadyForm, request.get_json(silent=True))
    log = mark_ready(form.subscription_id.data)
    return jsonify({'delivery': log.to_dict()})


@delivery_bp.route('/assign', methods=['POST'])
@login_required
@role_required(ROLE_ADMIN)
def assign():
    form = validate_json(DeliveryAssignForm, request.get_json(silent=True))
    log = assign_delivery(form.subscription_id.data, form.delivery_user_id.data)
    return jsonify({'delivery': log.to_dict()})


@delivery_bp.route('/partners', methods=['GET'])
@login_required
@role_required(ROLE_ADMIN)
def partners():
    """Users that can be picked as delivery_user_id on /assign."""
    return jsonify({'partners': [user.to_dict() for user in list_delivery_partners()]})


@delivery_bp.route('/out-for-delivery', methods=['POST'])
@login_required
@role_required(ROLE_DELIVERY, ROLE_ADMIN)
def out_for_delivery():
    """The logged-in agent has picked up the meal."""
    form = validate_json(DeliveryReadyForm, request.get_json(silent=True))
    log = mark_out_for_delivery(form.subscription_id.data, current_user.id)
    return jsonify({'delivery': log.to_dict()})


@delivery_bp.route('/confirm', methods=['POST'])
@login_required
@role_required(ROLE_DELIVERY, ROLE_ADMIN)
def confirm():
    """The logged-in agent confirms the drop-off at the given coordinates."""
    form = validate_json(DeliveryConfirmForm, request.get_json(silent=True))
    log = confirm_delivered(form.subscription_id.data, current_user.id, form.latitude.data, form.longitude.data)
    return jsonify({'delivery': log.to_dict()})


@delivery_bp.route('/queue', methods=['GET'])
@login_required
@role_required(ROLE_DELIVERY, ROLE_ADMIN)
def queue():
    return jsonify({'queue': get_delivery_queue(_requested_day())})


@delivery_bp.route('/history', methods=['GET'])
@login_required
@role_required(ROLE_DELIVERY, ROLE_ADMIN)
def history():
    """Delivery logs for the day. Agents only see their own."""
    agent_id = None if current_user.is_admin else current_user.id
    logs = get_delivery_history(_requested_day(), delivery_user_id=agent_id)
    return jsonify({'deliveries': [log.to_dict() for log in logs]})
