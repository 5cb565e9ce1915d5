from functools import wraps
from flask import jsonify, current_app, request
from flask_login import current_user

def role_required(*roles):
    """
    Decorator to ensure the logged-in user has one of the given roles
    (e.g., role_required('admin') or role_required('delivery', 'admin')).
    Apply it below @login_required so anonymous users get a 401 first.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                # This should ideally be handled by @login_required before this decorator runs.
                return jsonify({'error': 'Authentication required.'}), 401

            if current_user.role not in roles:
                current_app.logger.warning(f"User {current_user.id} ({current_user.role}) denied access to {request.path}; requires {', '.join(roles)}.")
                return jsonify({'error': 'You do not have permission to perform this action.'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
