from flask import Blueprint, jsonify

from services.orders import list_addons, list_menu_items
from services.settings import get_service_area

# Blueprint for public reads a client needs before ordering. No login required.
catalog_bp = Blueprint('catalog', __name__)


@catalog_bp.route('/menu', methods=['GET'])
def menu():
    """Menu items; each name is a valid `protein` for /orders and /orders/quote."""
    return jsonify({'menu': [item.to_dict() for item in list_menu_items()]})


@catalog_bp.route('/addons', methods=['GET'])
def addons():
    return jsonify({'addons': [addon.to_dict() for addon in list_addons()]})


@catalog_bp.route('/settings/service-area', methods=['GET'])
def service_area():
    """Outlet location and delivery radius, so clients can draw the delivery circle."""
    return jsonify(get_service_area()._asdict())
