from .auth import AccessLevel, User, SessionToken
from .inventory import Product, Movement, MOVEMENT_KINDS
from .security import SecurityEvent

__all__ = [
    'AccessLevel', 'User', 'SessionToken',
    'Product', 'Movement', 'MOVEMENT_KINDS',
    'SecurityEvent',
]
