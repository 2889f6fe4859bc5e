# backend/stockflow_client/__init__.py
from .api import ApiClient, ApiError, NotificationsApi, PaymentsApi
from .mutations import MutationError, OptimisticMutation
from .notifications import NotificationSync
from .payments import PaymentSync
from .query_cache import NotificationKeys, PaymentKeys, QueryCache
from .toast import Toaster

__all__ = [
    "ApiClient",
    "ApiError",
    "MutationError",
    "NotificationKeys",
    "NotificationSync",
    "NotificationsApi",
    "OptimisticMutation",
    "PaymentKeys",
    "PaymentSync",
    "PaymentsApi",
    "QueryCache",
    "Toaster",
]
