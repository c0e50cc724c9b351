"""Sync module for reconciling server subscriptions with the local store.

Contains the SubscriptionsSync orchestrator, the delta merge engine, retry
policy, and background dispatch.
"""

from roomsync.core.sync.background import BackgroundSync
from roomsync.core.sync.merge import MergeMode, merge_rooms, merge_subscriptions
from roomsync.core.sync.orchestrator import SubscriptionsSync, classify_sync_error
from roomsync.core.sync.retry import fetch_with_retry

__all__ = [
    "BackgroundSync",
    "MergeMode",
    "SubscriptionsSync",
    "classify_sync_error",
    "fetch_with_retry",
    "merge_rooms",
    "merge_subscriptions",
]
