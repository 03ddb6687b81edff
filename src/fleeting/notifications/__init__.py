"""Notification layer — records, scheduled delivery, and read-time reconciliation."""

from fleeting.notifications.reconciler import NotificationReconciler
from fleeting.notifications.scheduling import ScheduledOperations, ScheduleStatus, status
from fleeting.notifications.service import NotificationService

__all__ = [
    "NotificationReconciler",
    "NotificationService",
    "ScheduleStatus",
    "ScheduledOperations",
    "status",
]
