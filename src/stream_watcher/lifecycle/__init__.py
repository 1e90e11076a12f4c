"""Stream lifecycle reconciliation."""

from stream_watcher.lifecycle.handlers import LifecycleEventHandler
from stream_watcher.lifecycle.reconciler import StreamLifecycleReconciler

__all__ = ["LifecycleEventHandler", "StreamLifecycleReconciler"]
