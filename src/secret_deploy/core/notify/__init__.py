"""Notificação de serviços dependentes (restart / signal)."""

from .init_system import InitSystem, SystemdInitSystem
from .notifier import NotificationPlan, ServiceNotification, ServiceNotifier
from .planner import PlannedService, consolidate, plan_notifications

__all__ = [
    "InitSystem",
    "NotificationPlan",
    "PlannedService",
    "ServiceNotification",
    "ServiceNotifier",
    "SystemdInitSystem",
    "consolidate",
    "plan_notifications",
]
