"""
Unit of Work Module

A read-modify-write cycle over one or more collections: lock, load strictly,
let the caller mutate in memory, then replace each changed collection.
Nothing reaches the store until commit(), so there is no partial state to
undo when the engine raises.
"""

from typing import Any, Dict, List, Optional
import copy

from .errors import StoreUnavailableError
from .locking import CollectionLockManager
from .logging_config import get_logger, log_action
from .storage import Collection, DocumentStore


logger = get_logger("wallet_ledger.unit_of_work")


class UnitOfWork:
    """
    Context manager holding collection locks around a load/commit cycle
    
    Usage:
        with UnitOfWork(store, locks, Collection.ACCOUNTS) as uow:
            accounts = uow.records[Collection.ACCOUNTS]
            ...
            uow.commit({Collection.ACCOUNTS: new_records})
    """
    
    def __init__(
        self,
        store: DocumentStore,
        locks: CollectionLockManager,
        *collections: Collection,
        timeout: Optional[float] = None
    ):
        self.store = store
        self.locks = locks
        self.collections = CollectionLockManager.ordered(collections)
        self.timeout = timeout
        self.records: Dict[Collection, List[Dict[str, Any]]] = {}
        self._snapshot: Dict[Collection, List[Dict[str, Any]]] = {}
        self._hold = None
        self.committed = False
    
    def __enter__(self) -> 'UnitOfWork':
        self._hold = self.locks.hold(*self.collections, timeout=self.timeout)
        self._hold.__enter__()
        try:
            for collection in self.collections:
                loaded = self.store.load(collection)
                self._snapshot[collection] = copy.deepcopy(loaded)
                self.records[collection] = loaded
        except BaseException:
            self._hold.__exit__(None, None, None)
            self._hold = None
            raise
        return self
    
    def __exit__(self, exc_type, exc, tb):
        hold, self._hold = self._hold, None
        if hold is not None:
            hold.__exit__(exc_type, exc, tb)
        return False
    
    def commit(self, changes: Dict[Collection, List[Dict[str, Any]]]) -> None:
        """
        Replace the changed collections in lock order
        
        If a replace fails, collections already written in this commit are
        restored to the loaded snapshot before the error is raised.
        
        Raises:
            StoreUnavailableError: If any replace failed
        """
        unknown = [c.value for c in changes if c not in self._snapshot]
        if unknown:
            raise ValueError(f"Collections not loaded in this unit of work: {unknown}")
        
        written: List[Collection] = []
        for collection in CollectionLockManager.ordered(changes):
            if self.store.replace(collection, changes[collection]):
                written.append(collection)
                continue
            
            self._compensate(written)
            raise StoreUnavailableError(f"Failed to write {collection.value}")
        
        for collection in written:
            self._snapshot[collection] = copy.deepcopy(changes[collection])
        self.committed = True
    
    def _compensate(self, written: List[Collection]) -> None:
        """Restore already-written collections to their loaded snapshot"""
        for collection in reversed(written):
            if self.store.replace(collection, self._snapshot[collection]):
                logger.warning(f"Restored {collection.value} after a failed commit")
            else:
                log_action(
                    logger, "error",
                    f"Could not restore {collection.value} after a failed commit",
                    action="compensate", resource=collection.value
                )
