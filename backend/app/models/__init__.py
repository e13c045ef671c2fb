from .tenancy import Supplier, Merchant
from .auth import User, SessionToken, TeamInvitation
from .catalog import Product
from .orders import Order
from .billing import Plan, Subscription, AdCreative
from .activity import ActivityEvent

__all__ = [
    'Supplier', 'Merchant',
    'User', 'SessionToken', 'TeamInvitation',
    'Product',
    'Order',
    'Plan', 'Subscription', 'AdCreative',
    'ActivityEvent',
]
