"""Notification domain exports."""

from .models import Notification, NotificationType  # noqa: F401
from .repo import MemoryNotificationRepository, NotificationRepository  # noqa: F401
from .service import NotificationFanout  # noqa: F401
