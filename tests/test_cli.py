"""
CLI tests.
"""

import importlib

import pytest

from confidential_marketplace.config import MarketplaceConfig, load_config
from confidential_marketplace.runtime.session import Session
from confidential_marketplace.storage.preferences import MemoryPreferenceStore

from fakes import MOCK_ADDRESS, FakeGateway, FakeLedger

# The package re-exports the main() function under the submodule name
cli = importlib.import_module("confidential_marketplace.cli.main")


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "marketplace.yaml"
    config = MarketplaceConfig.from_dict({
        "contracts": {"mock": MOCK_ADDRESS},
        "polling": {"interval": 0, "attempts": 3},
        "confirmation": {"interval": 0, "attempts": 3},
        "preferences": {"backend": "memory"},
    })
    config.save(path)
    return path


@pytest.fixture
def ledger(monkeypatch):
    """Route CLI sessions to an in-memory ledger"""
    fake = FakeLedger()

    def create_session(config):
        return Session(config.settings(), rpc=fake, gateway=FakeGateway(), preferences=MemoryPreferenceStore())

    monkeypatch.setattr(cli, "create_session", create_session)
    return fake


class TestInit:

    def test_creates_config(self, tmp_path, capsys):
        path = tmp_path / "marketplace.yaml"
        assert cli.app(["--config", str(path), "init", "--network", "sepolia", "--mock-address", "0xmock"]) == 0
        config = load_config(path)
        assert config.network == "sepolia"
        assert config.contracts.mock == "0xmock"
        assert "Created" in capsys.readouterr().out

    def test_refuses_overwrite(self, config_path, capsys):
        assert cli.app(["--config", str(config_path), "init"]) == 1
        assert "already exists" in capsys.readouterr().out

    def test_unknown_network(self, tmp_path):
        assert cli.app(["--config", str(tmp_path / "m.yaml"), "init", "--network", "mars"]) == 1


class TestCommands:

    def test_no_command(self, capsys):
        assert cli.app([]) == 0

    def test_fee(self, capsys):
        assert cli.app(["fee", "1000", "--wei"]) == 0
        out = capsys.readouterr().out
        assert "950 wei" in out
        assert "50 wei, 5%" in out

    def test_fee_in_ether(self, capsys):
        assert cli.app(["fee", "0.001"]) == 0
        assert "0.000950 ETH" in capsys.readouterr().out

    def test_fee_invalid(self, capsys):
        assert cli.app(["fee", "lots"]) == 1

    def test_missing_config(self, tmp_path, capsys):
        assert cli.app(["--config", str(tmp_path / "absent.yaml"), "datasets"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_mode_show(self, config_path, capsys):
        assert cli.app(["--config", str(config_path), "mode"]) == 0
        assert "Mode:      mock" in capsys.readouterr().out

    def test_fhe_mode_on_plain_network(self, config_path, capsys):
        """Test selecting FHE on a network without FHE support fails"""
        assert cli.app(["--config", str(config_path), "mode", "fhe"]) == 1
        assert "Wrong network" in capsys.readouterr().out

    def test_upload_query_and_list(self, config_path, ledger, capsys):
        args = ["--config", str(config_path)]

        assert cli.app(args + ["upload", "Ages", "100,200,150,300,250", "0.01"]) == 0
        assert "id=1" in capsys.readouterr().out

        assert cli.app(args + ["query", "1", "count_above", "-p", "200"]) == 0
        out = capsys.readouterr().out
        assert "poll 1/3: COMPLETED" in out
        assert "Count Above Threshold: 2" in out
        assert "completed after 1 poll(s)" in out

        assert cli.app(args + ["datasets"]) == 0
        assert "#1 Ages" in capsys.readouterr().out

    def test_upload_links_explorer(self, tmp_path, monkeypatch, capsys):
        path = tmp_path / "marketplace.yaml"
        MarketplaceConfig.from_dict({
            "network": "sepolia",
            "contracts": {"mock": MOCK_ADDRESS},
            "confirmation": {"interval": 0, "attempts": 3},
            "preferences": {"backend": "memory"},
        }).save(path)
        fake = FakeLedger(chain_id=11155111)
        monkeypatch.setattr(cli, "create_session", lambda config: Session(
            config.settings(), rpc=fake, gateway=FakeGateway(), preferences=MemoryPreferenceStore(),
        ))

        assert cli.app(["--config", str(path), "upload", "Ages", "1,2,3", "0.01"]) == 0
        assert "Explorer:    https://sepolia.etherscan.io/tx/0x" in capsys.readouterr().out

    def test_query_error(self, config_path, ledger, capsys):
        assert cli.app(["--config", str(config_path), "query", "7", "mean"]) == 1
        assert "Dataset does not exist" in capsys.readouterr().out
