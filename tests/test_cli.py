"""
Tests for the maintenance command line
"""

import logging
import pytest

from wallet_ledger import __main__ as cli
from wallet_ledger.config import WalletConfig
from wallet_ledger.service import WalletService
from wallet_ledger.storage import InMemoryDocumentStore


class TestCommandLine:
    
    def setup_method(self):
        self.store = InMemoryDocumentStore()
    
    @pytest.fixture(autouse=True)
    def patch_service(self, monkeypatch):
        # main() reconfigures the package logger; undo it after each test
        package_logger = logging.getLogger("wallet_ledger")
        monkeypatch.setattr(package_logger, "handlers", [])
        monkeypatch.setattr(package_logger, "propagate", True)
        monkeypatch.setattr(package_logger, "level", package_logger.level)
        
        config = WalletConfig(log_level="WARNING", log_format="text")
        monkeypatch.setattr(cli, "get_config", lambda: config)
        monkeypatch.setattr(
            cli, "WalletService",
            lambda config: WalletService(store=self.store, config=config)
        )
    
    def test_sweep_with_nothing_due(self, capsys):
        """Test sweep with nothing due"""
        assert cli.main(["sweep"]) == 0
        assert "No investments ready for processing" in capsys.readouterr().out
    
    def test_sweep_reports_completed(self, capsys):
        """Test sweep reports completed"""
        service = WalletService(store=self.store, config=WalletConfig())
        service.register("Alice", "a@x.com", "111", "0000")
        service.open_investment("a@x.com", 100, 1)
        
        assert cli.main(["sweep", "--now", "2999-01-01T00:00:00Z"]) == 0
        assert "1 investments were completed" in capsys.readouterr().out
    
    def test_check_store(self, capsys):
        """Test check store"""
        assert cli.main(["check-store"]) == 0
        out = capsys.readouterr().out
        assert "accounts: 0 records" in out
        assert "transactions_log: 0 records" in out
    
    def test_verify(self, capsys):
        """Test verify"""
        service = WalletService(store=self.store, config=WalletConfig())
        service.register("Alice", "a@x.com", "111", "0000")
        
        assert cli.main(["verify"]) == 0
        assert capsys.readouterr().out == ""
    
    def test_unknown_command(self):
        """Test unknown command"""
        with pytest.raises(SystemExit):
            cli.main(["rebuild"])
