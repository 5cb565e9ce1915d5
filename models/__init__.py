from extensions import db
from .user import User, ROLE_CLIENT, ROLE_ADMIN, ROLE_DELIVERY
from .menu_item import MenuItem
from .add_on import AddOn
from .order import Order, OrderStatusEnum
from .subscription import Subscription, SubscriptionPause, SubscriptionStatusEnum
from .delivery_log import DeliveryLog, DeliveryStatusEnum
from .notification import Notification
from .setting import Setting
