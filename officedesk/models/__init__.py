from .user import User, UserRole
from .client import Client, ClientHistory, ClientHistoryType
from .task import Task, TaskAssignee, TaskComment, TaskStatus, TaskPriority, BillingStatus
from .notification import Notification
from .activity import Activity

__all__ = [
    "User", "UserRole",
    "Client", "ClientHistory", "ClientHistoryType",
    "Task", "TaskAssignee", "TaskComment", "TaskStatus", "TaskPriority", "BillingStatus",
    "Notification",
    "Activity",
]
