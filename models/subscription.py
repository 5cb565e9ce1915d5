import enum
from datetime import datetime
from extensions import db # Import the SQLAlchemy instance.

class SubscriptionStatusEnum(enum.Enum):
    """
    Enumeration for the possible statuses of a meal-plan subscription.
    This helps maintain consistency and avoids using raw strings for status values.
    """
    ACTIVE = 'ACTIVE'        # Meals are being delivered.
    PAUSED = 'PAUSED'        # Customer paused deliveries; the end date moves forward on resume.
    CANCELLED = 'CANCELLED'  # Cancelled by the customer. Terminal.
    EXPIRED = 'EXPIRED'      # Plan ran to its end date. Reserved for a scheduled expiry job.


class Subscription(db.Model):
    """
    The live entitlement created from an Order.

    Tracks the plan window (start and end date), the pause allowance and the
    current status. The end date only ever moves forward: resuming a paused
    plan pushes it out by the number of days spent paused.
    """
    __tablename__ = 'subscriptions' # Specifies the database table name.

    id = db.Column(db.Integer, primary_key=True) # Unique identifier for the subscription.

    # --- Foreign Keys ---
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    # Unique: one subscription per order.
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, unique=True)

    # --- Plan Window ---
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    # --- Status and Entitlements ---
    status = db.Column(db.Enum(SubscriptionStatusEnum), nullable=False, default=SubscriptionStatusEnum.ACTIVE, index=True)
    days_remaining = db.Column(db.Integer, nullable=False)
    pauses_remaining = db.Column(db.Integer, nullable=False, default=0) # Never negative.
    last_paused_at = db.Column(db.DateTime, nullable=True) # Set while PAUSED, cleared on resume.
    cancellation_reason = db.Column(db.String(500), nullable=True)

    # --- Plan Details (copied from the order) ---
    protein = db.Column(db.String(100), nullable=False)
    meals_per_day = db.Column(db.Integer, nullable=False)
    meal_types = db.Column(db.JSON, nullable=False, default=lambda: ['LUNCH'])
    addons = db.Column(db.JSON, nullable=True)
    delivery_address = db.Column(db.String(500), nullable=True)

    # --- Timestamps ---
    created_at = db.Column(db.DateTime, default=datetime.utcnow) # Timestamp of when this subscription record was created.
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow) # Timestamp of the last update.

    __table_args__ = (
        db.CheckConstraint('pauses_remaining >= 0', name='ck_subscriptions_pauses_remaining_non_negative'),
    )

    # --- Relationships ---
    pauses = db.relationship('SubscriptionPause', backref='subscription', lazy='dynamic',
                             order_by='SubscriptionPause.id')
    delivery_logs = db.relationship('DeliveryLog', backref='subscription', lazy='dynamic')

    @property
    def total_duration_days(self):
        """Whole days between start and end date, including days added back by resumes."""
        return (self.end_date - self.start_date).days

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'order_id': self.order_id,
            'status': self.status.value if self.status else None,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'days_remaining': self.days_remaining,
            'pauses_remaining': self.pauses_remaining,
            'last_paused_at': self.last_paused_at.isoformat() if self.last_paused_at else None,
            'cancellation_reason': self.cancellation_reason,
            'protein': self.protein,
            'meals_per_day': self.meals_per_day,
            'meal_types': self.meal_types,
            'addons': self.addons or {},
            'delivery_address': self.delivery_address,
        }

    def __repr__(self):
        """
        Provides a string representation of the Subscription object, useful for debugging.
        """
        return f'<Subscription {self.id} - User {self.user_id} - Status {self.status.value}>'


class SubscriptionPause(db.Model):
    """
    Audit row for one pause/resume cycle. Append-only; business logic never reads it back.
    """
    __tablename__ = 'subscription_pauses'

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey('subscriptions.id'), nullable=False, index=True)
    start_date = db.Column(db.DateTime, nullable=False) # When the pause began (last_paused_at).
    end_date = db.Column(db.DateTime, nullable=False)   # When the subscription was resumed.
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<SubscriptionPause {self.subscription_id}: {self.start_date} -> {self.end_date}>'
