import enum
from datetime import datetime
from extensions import db # Import the SQLAlchemy instance.

class OrderStatusEnum(enum.Enum):
    """
    Enumeration for the payment status of an order.
    There is no payment gateway yet, so orders are created as PAID.
    """
    PENDING = 'PENDING'  # Created, payment not confirmed.
    PAID = 'PAID'        # Payment confirmed (currently unconditional).
    FAILED = 'FAILED'    # Payment failed.


class Order(db.Model):
    """
    Immutable record of a meal-plan purchase.

    The total price is computed once at creation and persisted; it is never
    recalculated, even if menu or add-on prices change afterwards.
    Each order produces exactly one Subscription.
    """
    __tablename__ = 'orders' # Specifies the database table name.

    id = db.Column(db.Integer, primary_key=True) # Unique identifier for the order.

    # --- Foreign Keys ---
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # --- Plan Selection ---
    protein = db.Column(db.String(100), nullable=False) # MenuItem name at order time.
    days = db.Column(db.Integer, nullable=False) # Plan length in days.
    meals_per_day = db.Column(db.Integer, nullable=False) # Equals len(meal_types).
    meal_types = db.Column(db.JSON, nullable=False, default=lambda: ['LUNCH']) # e.g. ["LUNCH", "DINNER"].
    # Selection map as submitted: {"<addon id>": {"quantity": 1, "frequency": "daily"}}.
    addons = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.String(500), nullable=True)
    start_date = db.Column(db.Date, nullable=False)

    # --- Pricing and Payment ---
    total_price = db.Column(db.Integer, nullable=False) # Grand total: base plan + add-ons + delivery fee.
    status = db.Column(db.Enum(OrderStatusEnum), nullable=False, default=OrderStatusEnum.PENDING, index=True)

    # --- Delivery Location (optional) ---
    delivery_lat = db.Column(db.Float, nullable=True)
    delivery_lng = db.Column(db.Float, nullable=True)
    delivery_address = db.Column(db.String(500), nullable=True)

    # --- Timestamps ---
    # Indexed because the duplicate-submission guard filters on it.
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    # --- Relationship to Subscription ---
    # One-to-one: uselist=False returns a single Subscription (or None) instead of a list.
    subscription = db.relationship('Subscription', backref='order', uselist=False)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'protein': self.protein,
            'days': self.days,
            'meals_per_day': self.meals_per_day,
            'meal_types': self.meal_types,
            'addons': self.addons or {},
            'notes': self.notes,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'total_price': self.total_price,
            'status': self.status.value if self.status else None,
            'delivery_lat': self.delivery_lat,
            'delivery_lng': self.delivery_lng,
            'delivery_address': self.delivery_address,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        """
        Provides a string representation of the Order object, useful for debugging.
        """
        return f'<Order {self.id} - User {self.user_id} - {self.protein} x {self.days}d - {self.total_price}>'
