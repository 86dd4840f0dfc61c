"""Synchronization of cached content with its sources.

Key components:
- SyncOrchestrator: Tiered retrieval, background revalidation and forced refresh
- TaskSupervisor: In-flight fetch tracking and background task ownership
- UpdateNotifier / UpdateEvent: Subscribable update notifications
"""

from refcache.sync.notifications import UpdateEvent, UpdateNotifier
from refcache.sync.orchestrator import SyncOrchestrator
from refcache.sync.supervisor import TaskSupervisor

__all__ = ["SyncOrchestrator", "TaskSupervisor", "UpdateEvent", "UpdateNotifier"]
