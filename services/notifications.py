"""
Notification Service

Writes in-app notifications. Delivery is fire-and-forget from the caller's
point of view: `notify_admins` commits on its own and never raises, so a
notification problem cannot undo the order that triggered it.
"""

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import Notification, User, ROLE_ADMIN
from models.notification import NOTIFICATION_TYPES
from services.errors import NotFoundError, ValidationError


def notify(user_id, title, message, type='info'):
    """Adds a notification to the current session. The caller commits."""
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type '{type}'.")
    notification = Notification(user_id=user_id, title=title, message=message, type=type)
    db.session.add(notification)
    return notification


def notify_admins(title, message, type='info'):
    """
    Notifies every admin and commits.

    Returns:
        int: Number of notifications written. Zero if writing failed (the failure is logged).
    """
    try:
        admins = User.query.filter_by(role=ROLE_ADMIN).all()
        for admin in admins:
            notify(admin.id, title, message, type)
        db.session.commit()
        return len(admins)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to notify admins ('{title}'): {e}", exc_info=True)
        return 0


def list_notifications(user_id):
    """The user's notifications, newest first, read ones included."""
    return Notification.query.filter_by(user_id=user_id).order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_notification_read(notification_id, user_id):
    notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
    if notification is None:
        raise NotFoundError("Notification not found")
    notification.is_read = True
    db.session.commit()
    return notification
