"""Request transport pipeline.

Components:
- DispatchQueue: Rate-limited FIFO gate (one per client)
- RateLimitedTransport / PostOverflowTransport / BatchObserverTransport:
  composable httpx transport wrappers
- BatchDispatcher: Coalesces concurrent calls into batched wire requests
"""

from .adapters import (
    BatchEvent,
    BatchObserver,
    BatchObserverTransport,
    PostOverflowTransport,
    RateLimitedTransport,
    describe_batch,
    log_batch_event,
    rewrite_long_get,
)
from .batch import BatchDispatcher, PendingCall, build_batch_url
from .queue import DispatchQueue, QueuedCall, RateLimitPolicy

__all__ = [
    # Dispatch queue
    "DispatchQueue",
    "QueuedCall",
    "RateLimitPolicy",
    # Transport adapters
    "BatchEvent",
    "BatchObserver",
    "BatchObserverTransport",
    "PostOverflowTransport",
    "RateLimitedTransport",
    "describe_batch",
    "log_batch_event",
    "rewrite_long_get",
    # Batching
    "BatchDispatcher",
    "PendingCall",
    "build_batch_url",
]
