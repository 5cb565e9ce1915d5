from flask import Blueprint, jsonify, request
from flask_login import login_required

from forms import ServiceAreaForm, SubscriptionAdminUpdateForm, validate_json
from models import SubscriptionStatusEnum
from models.user import ROLE_ADMIN
from services.errors import ValidationError
from services.settings import get_service_area, update_service_area
from services.subscriptions import admin_update_subscription, list_subscriptions
from utils.decorators import role_required

# Blueprint for kitchen/admin management endpoints.
admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


@admin_bp.route('/subscriptions', methods=['GET'])
@login_required
@role_required(ROLE_ADMIN)
def subscriptions():
    """All subscriptions; ?status=ACTIVE|PAUSED|CANCELLED|EXPIRED filters."""
    status = request.args.get('status')
    if status:
        try:
            status = SubscriptionStatusEnum[status.upper()]
        except KeyError: # Handle invalid status string.
            raise ValidationError(f"Invalid status: '{status}'.")
    return jsonify({'subscriptions': [s.to_dict() for s in list_subscriptions(status or None)]})


@admin_bp.route('/subscriptions/<int:subscription_id>', methods=['PATCH'])
@login_required
@role_required(ROLE_ADMIN)
def update_subscription(subscription_id):
    """Overrides pauses_remaining and/or extends end_date."""
    form = validate_json(SubscriptionAdminUpdateForm, request.get_json(silent=True))
    subscription = admin_update_subscription(
        subscription_id,
        pauses_remaining=form.pauses_remaining.data,
        end_date=form.end_date.data,
    )
    return jsonify({'subscription': subscription.to_dict()})


@admin_bp.route('/settings/service-area', methods=['GET'])
@login_required
@role_required(ROLE_ADMIN)
def service_area():
    return jsonify(get_service_area()._asdict())


@admin_bp.route('/settings/service-area', methods=['PUT'])
@login_required
@role_required(ROLE_ADMIN)
def update_area():
    form = validate_json(ServiceAreaForm, request.get_json(silent=True))
    area = update_service_area(
        outlet_lat=form.outlet_lat.data,
        outlet_lng=form.outlet_lng.data,
        service_radius_km=form.service_radius_km.data,
    )
    return jsonify(area._asdict())
