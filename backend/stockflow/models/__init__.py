from .tenancy import Organization
from .payments import Payment
from .notifications import Notification

__all__ = [
    'Organization',
    'Payment',
    'Notification',
]
