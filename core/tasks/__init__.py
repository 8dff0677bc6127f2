from core.tasks.task_queue import BackgroundTaskQueue, CancellationToken

__all__ = ["BackgroundTaskQueue", "CancellationToken"]
