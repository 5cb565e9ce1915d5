import enum
from datetime import datetime
from extensions import db

class DeliveryStatusEnum(enum.Enum):
    """Progress of one subscription's delivery on one day."""
    PENDING = 'PENDING'
    READY = 'READY'                        # Kitchen has packed the meal.
    ASSIGNED = 'ASSIGNED'                  # An agent has been assigned.
    OUT_FOR_DELIVERY = 'OUT_FOR_DELIVERY'  # Agent picked it up.
    DELIVERED = 'DELIVERED'                # Dropped off. Terminal.


class DeliveryLog(db.Model):
    """
    One row per subscription per calendar day.

    Created by the first admin action of the day (mark ready or assign) and
    updated in place by later actions. `delivery_time` is the planned time
    until the meal is delivered, then the actual drop-off time.
    """
    __tablename__ = 'delivery_logs'

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey('subscriptions.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True) # Delivery agent.
    status = db.Column(db.Enum(DeliveryStatusEnum), nullable=False, default=DeliveryStatusEnum.PENDING)
    delivery_date = db.Column(db.Date, nullable=False, index=True) # Outlet-local calendar day.
    delivery_time = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    # Captured only when the agent confirms the drop-off.
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('subscription_id', 'delivery_date', name='uq_delivery_logs_subscription_day'),
    )

    delivery_agent = db.relationship('User', foreign_keys=[user_id])

    def to_dict(self):
        return {
            'id': self.id,
            'subscription_id': self.subscription_id,
            'user_id': self.user_id,
            'status': self.status.value,
            'delivery_date': self.delivery_date.isoformat(),
            'delivery_time': self.delivery_time.isoformat() if self.delivery_time else None,
            'latitude': self.latitude,
            'longitude': self.longitude,
        }

    def __repr__(self):
        return f'<DeliveryLog sub={self.subscription_id} {self.delivery_date} {self.status.value}>'
