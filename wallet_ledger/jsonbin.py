"""
JSONBin Document Store Module

REST client for the JSONBin blob service. Each collection lives in its own
bin; a read fetches the latest version of the bin and a write replaces it.
"""

import httpx
import logging
import time
from typing import Any, Dict, List, Optional

from .errors import StoreUnavailableError
from .storage import Collection, DocumentStore

logger = logging.getLogger("wallet_ledger.jsonbin")


class JSONBinDocumentStore(DocumentStore):
    """Whole-collection store backed by one JSONBin bin per collection"""
    
    def __init__(
        self,
        bin_ids: Dict[Collection, str],
        master_key: str,
        base_url: str = "https://api.jsonbin.io/v3",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None
    ):
        missing = [c.value for c in Collection if not bin_ids.get(c)]
        if missing:
            raise ValueError(f"Missing JSONBin bin id for: {', '.join(missing)}")
        
        self.bin_ids = dict(bin_ids)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {
            "Content-Type": "application/json",
            "X-Master-Key": master_key
        }
        self._client = client or httpx.Client(timeout=timeout)
    
    @classmethod
    def from_config(cls, config) -> 'JSONBinDocumentStore':
        return cls(
            bin_ids={
                Collection.ACCOUNTS: config.jsonbin_accounts_bin,
                Collection.TRANSACTIONS_LOG: config.jsonbin_transactions_bin,
                Collection.INVESTMENTS: config.jsonbin_investments_bin
            },
            master_key=config.jsonbin_master_key,
            base_url=config.jsonbin_base_url,
            timeout=config.store_timeout
        )
    
    def _bin_url(self, collection: Collection) -> str:
        return f"{self.base_url}/b/{self.bin_ids[collection]}"
    
    def load(self, collection: Collection) -> List[Dict[str, Any]]:
        """Fetch the latest version of a collection's bin"""
        url = f"{self._bin_url(collection)}/latest"
        start = time.time()
        
        try:
            response = self._client.get(url, headers=self._headers)
        except httpx.HTTPError as e:
            raise StoreUnavailableError(f"JSONBin read of {collection.value} failed: {e}")
        
        latency_ms = (time.time() - start) * 1000
        
        if response.status_code == 404:
            logger.info(f"Bin for {collection.value} not found, treating as empty")
            return []
        
        if response.status_code != 200:
            raise StoreUnavailableError(
                f"JSONBin returned {response.status_code} reading {collection.value}"
            )
        
        try:
            record = response.json().get("record")
        except ValueError as e:
            raise StoreUnavailableError(f"JSONBin sent invalid JSON for {collection.value}: {e}")
        
        logger.debug(f"Read {collection.value} in {latency_ms:.1f}ms")
        
        if record is None:
            return []
        if not isinstance(record, list):
            raise StoreUnavailableError(f"Bin for {collection.value} does not hold a list")
        return record
    
    def replace(self, collection: Collection, records: List[Dict[str, Any]]) -> bool:
        """Replace a collection's bin with the full record list"""
        try:
            response = self._client.put(
                self._bin_url(collection),
                json=records,
                headers=self._headers
            )
        except httpx.HTTPError as e:
            logger.error(f"JSONBin write of {collection.value} failed: {e}")
            return False
        
        if response.status_code != 200:
            logger.error(f"JSONBin returned {response.status_code} writing {collection.value}: {response.text}")
            return False
        
        return True
    
    def close(self):
        """Close the HTTP client"""
        self._client.close()
