"""
Tests for document store backends
"""

import json
import pytest

from wallet_ledger.config import WalletConfig
from wallet_ledger.errors import StoreUnavailableError
from wallet_ledger.storage import (
    Collection, InMemoryDocumentStore, JSONFileDocumentStore, create_store
)


ACCOUNTS = [
    {"email": "a@x.com", "balance": "1800.00", "transactions": []},
    {"email": "b@x.com", "balance": "25.00", "transactions": []},
]


class TestCollection:
    """Test collection naming and lock ranks"""
    
    def test_lock_order(self):
        """Test lock order"""
        assert Collection.ACCOUNTS.rank < Collection.INVESTMENTS.rank < Collection.TRANSACTIONS_LOG.rank
    
    def test_values(self):
        """Test values"""
        assert {c.value for c in Collection} == {"accounts", "investments", "transactions_log"}


class TestInMemoryDocumentStore:
    """Test in-memory store semantics"""
    
    def test_empty_collection_is_not_an_error(self):
        """Test empty collection is not an error"""
        store = InMemoryDocumentStore()
        assert store.load(Collection.ACCOUNTS) == []
        assert store.get(Collection.INVESTMENTS) == []
    
    def test_replace_and_load(self):
        """Test replace and load"""
        store = InMemoryDocumentStore()
        assert store.replace(Collection.ACCOUNTS, ACCOUNTS)
        assert store.load(Collection.ACCOUNTS) == ACCOUNTS
    
    def test_loaded_records_are_copies(self):
        """Mutating a loaded collection must not touch the store"""
        store = InMemoryDocumentStore({Collection.ACCOUNTS: ACCOUNTS})
        loaded = store.load(Collection.ACCOUNTS)
        loaded[0]["balance"] = "0.00"
        loaded.append({"email": "c@x.com"})
        
        assert store.load(Collection.ACCOUNTS) == ACCOUNTS
    
    def test_health_check(self):
        """Test health check"""
        store = InMemoryDocumentStore({Collection.ACCOUNTS: ACCOUNTS})
        assert store.health_check() == {
            "accounts": 2, "investments": 0, "transactions_log": 0
        }
    
    def test_get_degrades_to_empty(self):
        """get() swallows read failures, load() does not"""
        class BrokenStore(InMemoryDocumentStore):
            def load(self, collection):
                raise StoreUnavailableError("down")
        
        store = BrokenStore()
        assert store.get(Collection.ACCOUNTS) == []
        with pytest.raises(StoreUnavailableError):
            store.load(Collection.ACCOUNTS)
        assert store.health_check()["accounts"] is None


class TestJSONFileDocumentStore:
    """Test JSON file persistence"""
    
    def test_round_trip(self, tmp_path):
        """Test round trip"""
        store = JSONFileDocumentStore(tmp_path)
        assert store.load(Collection.ACCOUNTS) == []
        
        assert store.replace(Collection.ACCOUNTS, ACCOUNTS)
        assert (tmp_path / "accounts.json").exists()
        
        reopened = JSONFileDocumentStore(tmp_path)
        assert reopened.load(Collection.ACCOUNTS) == ACCOUNTS
    
    def test_no_temporary_files_left(self, tmp_path):
        """Test no temporary files left"""
        store = JSONFileDocumentStore(tmp_path)
        store.replace(Collection.INVESTMENTS, [{"id": "1"}])
        store.replace(Collection.INVESTMENTS, [{"id": "2"}])
        
        assert sorted(p.name for p in tmp_path.iterdir()) == ["investments.json"]
    
    def test_corrupt_file_is_unavailable(self, tmp_path):
        """Test corrupt file is unavailable"""
        (tmp_path / "accounts.json").write_text("{not json", encoding="utf-8")
        store = JSONFileDocumentStore(tmp_path)
        
        with pytest.raises(StoreUnavailableError):
            store.load(Collection.ACCOUNTS)
        assert store.get(Collection.ACCOUNTS) == []
    
    def test_non_list_document_is_unavailable(self, tmp_path):
        """Test non list document is unavailable"""
        (tmp_path / "accounts.json").write_text(json.dumps({"record": []}), encoding="utf-8")
        store = JSONFileDocumentStore(tmp_path)
        
        with pytest.raises(StoreUnavailableError, match="JSON array"):
            store.load(Collection.ACCOUNTS)


class TestCreateStore:
    """Test backend selection from configuration"""
    
    def test_memory_backend(self):
        """Test memory backend"""
        store = create_store(WalletConfig(store_backend="memory"))
        assert isinstance(store, InMemoryDocumentStore)
    
    def test_file_backend(self, tmp_path):
        """Test file backend"""
        store = create_store(WalletConfig(store_backend="file", store_path=str(tmp_path / "data")))
        assert isinstance(store, JSONFileDocumentStore)
        assert (tmp_path / "data").is_dir()
    
    def test_unknown_backend(self):
        """Test unknown backend"""
        with pytest.raises(ValueError, match="Unsupported store backend"):
            create_store(WalletConfig(store_backend="s3"))
