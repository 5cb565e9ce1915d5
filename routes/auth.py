from flask import Blueprint, jsonify, request, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import IntegrityError

from forms import LoginForm, RegistrationForm, validate_json
from models.user import User, ROLE_CLIENT
from extensions import db
from services.errors import ConflictError, InternalError

# Blueprint for authentication-related routes.
# Groups register/login/logout/me under the '/auth' URL prefix.
auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

# Route for user registration.
@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Creates a customer account from a JSON body and logs the new user in.

    Body: email, password, confirm_password, name, and optionally phone and address.
    """
    form = validate_json(RegistrationForm, request.get_json(silent=True)) # Raises ValidationError (400) on bad input.

    # Accounts created here are always customers; admins and delivery partners are created by an admin.
    new_user = User(
        email=form.email.data.lower(),
        name=form.name.data,
        phone=form.phone.data or None,
        address=form.address.data or None,
        role=ROLE_CLIENT,
    )
    new_user.set_password(form.password.data) # Hash the password for secure storage

    try:
        db.session.add(new_user) # Add the new user object to the database session
        db.session.commit() # Commit the transaction to save the user to the database.
    except IntegrityError: # Handle specific database error for duplicate entries.
        # Two registrations for the same email racing past the form check.
        db.session.rollback()
        current_app.logger.warning(f"Registration failed for email {new_user.email}: email already exists (IntegrityError).")
        raise ConflictError('That email address is already registered. Please use a different email or log in.')
    except Exception as e: # Catch any other unexpected errors during the registration process.
        db.session.rollback()
        current_app.logger.error(f"Error during registration for {new_user.email}: {e}", exc_info=True)
        raise InternalError('An error occurred during registration. Please try again later.')

    login_user(new_user) # Log in the new user using Flask-Login's login_user function.
    current_app.logger.info(f"New user registered: {new_user.email}")
    return jsonify({'user': new_user.to_dict()}), 201

# Route for user login.
@auth_bp.route('/login', methods=['POST'])
def login():
    """Authenticates email/password from a JSON body and starts a session."""
    form = validate_json(LoginForm, request.get_json(silent=True))

    # Attempt to retrieve the user from the database by the provided email.
    user = User.query.filter_by(email=form.email.data.lower()).first()

    # Verify if the user exists and the password matches.
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning(f"Failed login attempt for email: {form.email.data} due to invalid credentials.")
        return jsonify({'error': 'Invalid email or password. Please try again.'}), 401

    # The 'remember' flag determines if the session cookie is persistent ("Remember Me" functionality).
    login_user(user, remember=form.remember_me.data)
    current_app.logger.info(f"User {user.email} logged in successfully.")
    return jsonify({'user': user.to_dict()})

# Route for user logout.
@auth_bp.route('/logout', methods=['POST'])
@login_required # Flask-Login decorator: ensures only authenticated users can access this route.
def logout():
    user_email = current_user.email # Capture email for logging before the session is cleared.
    logout_user()
    current_app.logger.info(f"User {user_email} logged out.")
    return jsonify({'message': 'You have been logged out successfully.'})

@auth_bp.route('/me')
@login_required
def me():
    """Profile of the logged-in user."""
    return jsonify({'user': current_user.to_dict()})
