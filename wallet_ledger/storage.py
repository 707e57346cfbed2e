"""
Document Store Module

Provides the abstract whole-document store interface and implementations for
in-memory (testing) and JSON files (local persistence). A store only knows how
to fetch and replace an entire named collection; it offers no partial writes,
no transactions and no queries.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union
from enum import Enum
from pathlib import Path
import json
import os
import tempfile
import threading

from .errors import StoreUnavailableError
from .logging_config import get_logger


logger = get_logger("wallet_ledger.storage")


class Collection(Enum):
    """
    Named top-level collections. Declaration order is the global lock
    order: accounts before investments before transactions_log.
    """
    ACCOUNTS = "accounts"
    INVESTMENTS = "investments"
    TRANSACTIONS_LOG = "transactions_log"
    
    @property
    def rank(self) -> int:
        return list(Collection).index(self)


class DocumentStore(ABC):
    """Abstract interface for whole-collection document stores"""
    
    @abstractmethod
    def load(self, collection: Collection) -> List[Dict[str, Any]]:
        """
        Fetch the full collection.
        
        Returns an empty list when the collection does not exist yet.
        
        Raises:
            StoreUnavailableError: If the store could not be read
        """
        pass
    
    @abstractmethod
    def replace(self, collection: Collection, records: List[Dict[str, Any]]) -> bool:
        """Replace the full collection. Returns False if the write failed."""
        pass
    
    def get(self, collection: Collection) -> List[Dict[str, Any]]:
        """
        Fetch the full collection, degrading to an empty list on failure.
        
        Only for diagnostics and read-only views; a mutation must use load()
        so that an outage is never written back as an empty collection.
        """
        try:
            return self.load(collection)
        except StoreUnavailableError as e:
            logger.error(f"Error reading {collection.value}: {e}")
            return []
    
    def health_check(self) -> Dict[str, Optional[int]]:
        """Count records per collection; None marks an unreadable collection"""
        counts: Dict[str, Optional[int]] = {}
        for collection in Collection:
            try:
                counts[collection.value] = len(self.load(collection))
            except StoreUnavailableError as e:
                logger.error(f"Health check failed for {collection.value}: {e}")
                counts[collection.value] = None
        return counts

    def close(self) -> None:
        """Close store connection (default no-op)"""
        pass


def _copy(records: Any) -> Any:
    # Deep copy through JSON so callers never share state with the store
    return json.loads(json.dumps(records, default=str))


class InMemoryDocumentStore(DocumentStore):
    """In-memory document store for testing"""
    
    def __init__(self, initial: Optional[Dict[Collection, List[Dict[str, Any]]]] = None):
        self._data: Dict[Collection, List[Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        for collection, records in (initial or {}).items():
            self._data[collection] = _copy(records)
    
    def load(self, collection: Collection) -> List[Dict[str, Any]]:
        """Load a collection from memory"""
        with self._lock:
            return _copy(self._data.get(collection, []))
    
    def replace(self, collection: Collection, records: List[Dict[str, Any]]) -> bool:
        """Replace a collection in memory"""
        with self._lock:
            self._data[collection] = _copy(records)
            return True
    
    def get_all_data(self) -> Dict[str, List[Dict[str, Any]]]:
        """Get all data for debugging/inspection"""
        with self._lock:
            return {c.value: _copy(records) for c, records in self._data.items()}


class JSONFileDocumentStore(DocumentStore):
    """
    Stores each collection as one JSON file in a directory.
    
    Writes go to a temporary file that is atomically renamed over the
    previous document, so a reader never observes a half-written collection.
    """
    
    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
    
    def _path(self, collection: Collection) -> Path:
        return self.directory / f"{collection.value}.json"
    
    def load(self, collection: Collection) -> List[Dict[str, Any]]:
        """Load a collection from its JSON file"""
        path = self._path(collection)
        with self._lock:
            if not path.exists():
                return []
            try:
                with path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, ValueError) as e:
                raise StoreUnavailableError(f"Cannot read {path}: {e}")
        
        if not isinstance(data, list):
            raise StoreUnavailableError(f"{path} does not contain a JSON array")
        return data
    
    def replace(self, collection: Collection, records: List[Dict[str, Any]]) -> bool:
        """Atomically replace a collection's JSON file"""
        path = self._path(collection)
        with self._lock:
            tmp_name = None
            try:
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{collection.value}.", suffix=".tmp", dir=str(self.directory)
                )
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(records, fh, default=str, indent=2)
                os.replace(tmp_name, path)
                return True
            except OSError as e:
                logger.error(f"Error writing {path}: {e}")
                if tmp_name and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                return False


def create_store(config) -> DocumentStore:
    """Build the document store selected by configuration"""
    backend = config.store_backend.lower()
    
    if backend == "memory":
        return InMemoryDocumentStore()
    
    if backend == "file":
        return JSONFileDocumentStore(config.store_path)
    
    if backend == "jsonbin":
        from .jsonbin import JSONBinDocumentStore
        return JSONBinDocumentStore.from_config(config)
    
    raise ValueError(f"Unsupported store backend: {config.store_backend}")
