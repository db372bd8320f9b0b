from .auth import User, SessionToken
from .dealers import Dealer
from .warranties import WarrantyRegistration
from .notifications import Notification
from .security import SecurityEvent

__all__ = [
    'User', 'SessionToken',
    'Dealer',
    'WarrantyRegistration',
    'Notification',
    'SecurityEvent',
]
