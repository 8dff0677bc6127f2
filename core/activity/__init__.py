from core.activity.store import ActivityAction, ActivityLog, ActivityLogStore

__all__ = ["ActivityAction", "ActivityLog", "ActivityLogStore"]
