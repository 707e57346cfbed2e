"""
Collection Lock Manager

The document store offers no locking or version tokens, so every
read-modify-write cycle is serialized in-process here. Each collection has
one exclusive lock; multi-collection holders always acquire in the
Collection declaration order and release in reverse.
"""

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional
import threading
import time

from .errors import ConcurrencyTimeoutError
from .logging_config import get_logger
from .storage import Collection


logger = get_logger("wallet_ledger.locking")


class CollectionLockManager:
    """Per-collection exclusive locks with bounded waits"""
    
    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._locks: Dict[Collection, threading.Lock] = {
            collection: threading.Lock() for collection in Collection
        }
    
    @staticmethod
    def ordered(collections: Iterable[Collection]) -> List[Collection]:
        """Deduplicate and sort collections into global lock order"""
        return sorted(set(collections), key=lambda c: c.rank)
    
    @contextmanager
    def hold(self, *collections: Collection, timeout: Optional[float] = None) -> Iterator[List[Collection]]:
        """
        Hold the locks for the given collections for the duration of the block
        
        Args:
            collections: Collections to lock, in any order
            timeout: Total seconds to wait for all locks (defaults to the manager timeout)
            
        Raises:
            ConcurrencyTimeoutError: If the locks could not all be acquired in time
        """
        wait = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + wait
        ordered = self.ordered(collections)
        acquired: List[Collection] = []
        
        try:
            for collection in ordered:
                remaining = max(0.0, deadline - time.monotonic())
                if not self._locks[collection].acquire(timeout=remaining):
                    logger.warning(
                        f"Timed out after {wait}s waiting for {collection.value} lock"
                    )
                    raise ConcurrencyTimeoutError(
                        f"Could not lock {collection.value} within {wait} seconds"
                    )
                acquired.append(collection)
            
            yield ordered
        finally:
            for collection in reversed(acquired):
                self._locks[collection].release()
    
    def is_locked(self, collection: Collection) -> bool:
        """Check whether a collection lock is currently held"""
        return self._locks[collection].locked()
