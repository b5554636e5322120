"""
End-to-end tests for the tipstake command line.

Each test drives a fresh data directory through CliRunner with a fixed
--timestamp so reward and lock arithmetic is deterministic.
"""

import json

import pytest
from click.testing import CliRunner

from tipstake.cli.main import cli
from tipstake.crypto import address_from_label, to_checksum_address
from tipstake.utils.logger import reset_logging

START = 1_700_000_000
WEEK = 7 * 24 * 3600
YEAR = 365 * 24 * 3600


@pytest.fixture(autouse=True)
def clean_logging():
    yield
    reset_logging()


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()
    data_dir = str(tmp_path / "data")

    def invoke(*args, at=START):
        return runner.invoke(
            cli,
            ["--data-dir", data_dir, "--timestamp", str(at), *args],
            catch_exceptions=False,
        )

    return invoke


@pytest.fixture
def funded(run):
    """Pool owned by @owner with a reward reserve and an approved @alice."""
    assert run("init", "--owner", "@owner").exit_code == 0
    assert run("token", "mint", "@owner", "100000").exit_code == 0
    assert run("token", "fund", "--from", "@owner", "50000").exit_code == 0
    assert run("token", "mint", "@alice", "10000").exit_code == 0
    assert run("token", "approve", "--account", "@alice", "max").exit_code == 0
    return run


class TestSetup:
    def test_init(self, run):
        result = run("init", "--owner", "@owner")
        assert result.exit_code == 0
        assert "✓ Pool created" in result.output
        assert to_checksum_address(address_from_label("owner")) in result.output

    def test_init_twice_rejected(self, run):
        run("init", "--owner", "@owner")
        result = run("init", "--owner", "@owner")
        assert result.exit_code != 0
        assert "already exists" in result.output

    def test_commands_require_pool(self, run):
        result = run("stats")
        assert result.exit_code != 0
        assert "tipstake init" in result.output

    def test_bad_address(self, run):
        result = run("init", "--owner", "0x1234")
        assert result.exit_code == 2

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestStakingFlow:
    def test_stake_and_info(self, funded):
        result = funded("stake", "--account", "@alice", "1000")
        assert result.exit_code == 0
        assert "✓ Staked 1000 TIP" in result.output
        assert "7d 0h" in result.output

        info = funded("info", "@alice", "--json", at=START + YEAR)
        data = json.loads(info.output)
        assert data["amount"] == str(1000 * 10**18)
        assert data["rewards"] == str(100 * 10**18)
        assert data["unlock_time"] == START + WEEK
        assert data["can_unstake_without_penalty"] is True
        assert data["can_claim_rewards"] is True

    def test_stake_zero_rejected(self, funded):
        result = funded("stake", "--account", "@alice", "0")
        assert result.exit_code == 1
        assert "Cannot stake 0" in result.output

    def test_stake_without_approval(self, funded):
        funded("token", "mint", "@bob", "10")
        result = funded("stake", "--account", "@bob", "10")
        assert result.exit_code == 1
        assert "ERC20InsufficientAllowance" in result.output

    def test_early_unstake_penalty(self, funded):
        funded("stake", "--account", "@alice", "1000")
        result = funded("unstake", "--account", "@alice", "1000", at=START + 3600)
        assert result.exit_code == 0
        assert "Penalty: 10 TIP" in result.output

    def test_claim(self, funded):
        funded("stake", "--account", "@alice", "1000")
        result = funded("claim", "--account", "@alice", at=START + YEAR)
        assert result.exit_code == 0
        assert "✓ Claimed 100 TIP" in result.output

        balance = funded("token", "balance", "@alice", at=START + YEAR)
        assert "9100 TIP" in balance.output

    def test_claim_without_stake(self, funded):
        result = funded("claim", "--account", "@alice")
        assert result.exit_code == 1
        assert "No stake found" in result.output

    def test_stats(self, funded):
        funded("stake", "--account", "@alice", "1000")
        result = funded("stats", "--json")
        data = json.loads(result.output)
        assert data["total_staked"] == str(1000 * 10**18)
        assert data["stakers"] == 1
        assert data["reward_rate"] == 10

    def test_events(self, funded):
        funded("stake", "--account", "@alice", "1000")
        funded("claim", "--account", "@alice", at=START + 60)
        result = funded("events", "--name", "Staked")
        lines = result.output.strip().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["event"] == "Staked"


class TestAdmin:
    def test_pause_blocks_stake(self, funded):
        assert "✓ Pool paused" in funded("pause", "--caller", "@owner").output
        result = funded("stake", "--account", "@alice", "1000")
        assert result.exit_code == 1
        assert "EnforcedPause" in result.output

        assert "✓ Pool unpaused" in funded("unpause", "--caller", "@owner").output
        assert funded("stake", "--account", "@alice", "1000").exit_code == 0

    def test_non_owner_rejected(self, funded):
        result = funded("pause", "--caller", "@alice")
        assert result.exit_code == 1
        assert "OwnableUnauthorizedAccount" in result.output

    def test_emergency_withdraw(self, funded):
        result = funded("emergency-withdraw", "--caller", "@owner", "@treasury")
        assert result.exit_code == 0
        assert "✓ Withdrew 50000 TIP" in result.output

        again = funded("emergency-withdraw", "--caller", "@owner", "@treasury")
        assert again.exit_code == 1
        assert "No balance to withdraw" in again.output


class TestTokenUnits:
    def test_amounts_use_saved_token_decimals(self, tmp_path):
        from tipstake.core.storage import StorageManager

        runner = CliRunner()
        data_dir = tmp_path / "data"
        base = ["--data-dir", str(data_dir), "--timestamp", str(START)]

        created = runner.invoke(
            cli, [*base, "init", "--owner", "@owner"], env={"TIPSTAKE_TOKEN_DECIMALS": "6"}
        )
        assert created.exit_code == 0

        minted = runner.invoke(cli, [*base, "token", "mint", "@alice", "1"])
        assert minted.exit_code == 0
        assert "✓ Minted 1 TIP" in minted.output

        storage = StorageManager(data_dir)
        balances, _ = storage.load_token_state(storage.load_pool_meta()["token"])
        assert balances == [(address_from_label("alice"), 10**6)]
        storage.close()

        shown = runner.invoke(
            cli, [*base, "token", "balance", "@alice"], env={"TIPSTAKE_TOKEN_SYMBOL": "XYZ"}
        )
        assert "Balance: 1 TIP" in shown.output

    def test_exponent_amount_rejected(self, run):
        run("init", "--owner", "@owner")
        result = run("token", "mint", "@alice", "1e3")
        assert result.exit_code == 2
        assert "Not a decimal amount" in result.output


class TestLogging:
    def test_log_file_written_to_log_dir(self, tmp_path):
        log_dir = tmp_path / "logs"
        result = CliRunner().invoke(
            cli,
            ["--data-dir", str(tmp_path / "data"), "--timestamp", str(START), "--log-file",
             "init", "--owner", "@owner"],
            env={"TIPSTAKE_LOG_DIR": str(log_dir)},
        )
        assert result.exit_code == 0

        paused = CliRunner().invoke(
            cli,
            ["--data-dir", str(tmp_path / "data"), "--timestamp", str(START), "--log-file",
             "pause", "--caller", "@owner"],
            env={"TIPSTAKE_LOG_DIR": str(log_dir)},
        )
        assert paused.exit_code == 0
        reset_logging()
        assert "Pool paused" in (log_dir / "tipstake.log").read_text(encoding="utf-8")

    def test_no_log_file_by_default(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        CliRunner().invoke(cli, ["--data-dir", str(tmp_path / "data"), "init", "--owner", "@owner"])
        assert not (tmp_path / "logs").exists()


class TestDemo:
    def test_demo_runs(self, tmp_path):
        result = CliRunner().invoke(cli, ["--data-dir", str(tmp_path), "demo"])
        assert result.exit_code == 0
        assert "Penalty-free: True" in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
