"""Background workers package."""

from ai_tagging.workers.dispatch_worker import DispatchWorker

__all__ = [
    "DispatchWorker",
]
