"""ARQ task functions."""

from ai_tagging.workers.tasks.dispatch import dispatch_tagging_queue
from ai_tagging.workers.tasks.scheduled import enqueue_scheduled_tagging

__all__ = ["dispatch_tagging_queue", "enqueue_scheduled_tagging"]
