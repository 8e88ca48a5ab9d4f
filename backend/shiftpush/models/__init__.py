"""Database models."""
from .push_token import PushNotificationToken
from .push_attempt import PushNotificationAttempt

__all__ = ["PushNotificationToken", "PushNotificationAttempt"]
