from datetime import datetime
from extensions import db
import bcrypt
from flask_login import UserMixin # For Flask-Login integration (e.g., current_user).

ROLE_CLIENT = 'client'
ROLE_ADMIN = 'admin'
ROLE_DELIVERY = 'delivery'
ROLES = (ROLE_CLIENT, ROLE_ADMIN, ROLE_DELIVERY)

class User(db.Model, UserMixin):
    """
    Represents an account: a customer buying meal plans, an admin running the kitchen,
    or a delivery agent dropping off meals.

    UserMixin provides the default implementations Flask-Login needs
    (e.g., is_authenticated, get_id).
    """
    __tablename__ = 'users' # Specifies the database table name.

    # --- Basic User Information ---
    id = db.Column(db.Integer, primary_key=True) # Unique identifier for the user.
    name = db.Column(db.String(100), nullable=False) # Display name, used in admin notifications.
    email = db.Column(db.String(120), unique=True, nullable=False, index=True) # Login identifier. Must be unique.
    password_hash = db.Column(db.String(128), nullable=False) # bcrypt hash of the password.
    phone = db.Column(db.String(20), nullable=True) # Contact number for the delivery agent.
    address = db.Column(db.Text, nullable=True) # Default delivery address.

    # --- Role ---
    # 'client', 'admin' or 'delivery'. Admins receive order notifications; delivery agents confirm drop-offs.
    role = db.Column(db.String(20), nullable=False, default=ROLE_CLIENT, index=True)

    # --- Timestamps ---
    created_at = db.Column(db.DateTime, default=datetime.utcnow) # Timestamp of when the user record was created.
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow) # Timestamp of the last update.

    # --- Relationships ---
    # 'lazy='dynamic'' returns queries so callers can filter (e.g., user.subscriptions.filter_by(status=...)).
    orders = db.relationship('Order', backref='user', lazy='dynamic')
    subscriptions = db.relationship('Subscription', backref='user', lazy='dynamic')

    def set_password(self, password):
        """
        Hashes the provided password and stores it in `password_hash`.

        Args:
            password (str): The plain-text password to hash.
        """
        # Salt is generated automatically by bcrypt; the hash is stored as a UTF-8 string.
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        """
        Verifies if the provided password matches the stored hashed password.

        Returns:
            bool: True if the password matches, False otherwise.
        """
        if self.password_hash:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        return False # No password hash stored, so password check fails.

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'role': self.role,
        }

    def __repr__(self):
        """
        Provides a string representation of the User object, useful for debugging.
        """
        return f'<User {self.email} ({self.role})>'
