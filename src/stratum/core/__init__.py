"""
Dispatch engine: dependency resolution, call contexts, resolved objects and retry.
"""

from stratum.core.context import CallContext, WorkingSet
from stratum.core.dispatcher import Dispatcher
from stratum.core.resolved import ResolvedList, ResolvedObject
from stratum.core.retry import Backoff, RetryPolicy, retry_call, with_retry

__all__ = [
    "Backoff",
    "CallContext",
    "Dispatcher",
    "ResolvedList",
    "ResolvedObject",
    "RetryPolicy",
    "WorkingSet",
    "retry_call",
    "with_retry",
]
