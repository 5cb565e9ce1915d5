from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from services.notifications import list_notifications, mark_notification_read

# Blueprint for the logged-in user's in-app notifications.
notifications_bp = Blueprint('notifications', __name__, url_prefix='/notifications')


@notifications_bp.route('', methods=['GET'])
@login_required
def index():
    notifications = list_notifications(current_user.id)
    return jsonify({
        'notifications': [n.to_dict() for n in notifications],
        'unread': sum(1 for n in notifications if not n.is_read),
    })


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@login_required
def mark_read(notification_id):
    notification = mark_notification_read(notification_id, current_user.id)
    return jsonify({'notification': notification.to_dict()})
