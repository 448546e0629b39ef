from .auth import User, SessionToken
from .otp import OtpToken
from .inventory import Vehicle
from .purchases import PurchaseRequest, Sale
from .security import SecurityEvent

__all__ = [
    'User', 'SessionToken',
    'OtpToken',
    'Vehicle',
    'PurchaseRequest', 'Sale',
    'SecurityEvent',
]
