"""
Batch processing module for nutrifetch.

Processes item lists in sequential chunks of concurrent calls.
"""

from nutrifetch.batch.executor import batch, chunked

__all__ = [
    "batch",
    "chunked",
]
