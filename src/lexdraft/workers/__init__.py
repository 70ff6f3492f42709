from .scheduler import WorkerScheduler, Processor

__all__ = ["WorkerScheduler", "Processor"]
