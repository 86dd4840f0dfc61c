"""Tests for CLI commands.

These tests run the commands against a temporary cache directory, with a
local directory standing in for the remote authority.
"""

import orjson
import pytest
from click.testing import CliRunner

from refcache.cache.config import CacheConfig
from refcache.cache.store import FileCacheStore
from refcache.cli.main import cli
from refcache.payload import ContentPayload


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "REFCACHE_CACHE_DIR",
        "REFCACHE_TTL",
        "REFCACHE_REMOTE_URL",
        "REFCACHE_BUNDLED_PATH",
        "REFCACHE_MAX_ITEM_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def remote_dir(tmp_path):
    remote = tmp_path / "remote"
    remote.mkdir()
    (remote / "perks.json").write_bytes(
        orjson.dumps(
            {"version": "remote-v2", "lastUpdated": 2000, "body": {"perks": {"combat": []}}}
        )
    )
    return remote


@pytest.fixture
def base_args(tmp_path, remote_dir):
    return ["--cache-dir", str(tmp_path / "cache"), "--remote-url", str(remote_dir)]


def _store(tmp_path):
    return FileCacheStore(tmp_path / "cache")


class TestLoad:
    """Test load command."""

    def test_load_from_remote(self, tmp_path, base_args):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "load", "perks"])

        assert result.exit_code == 0
        assert "Loaded 'perks'" in result.output
        assert "Version: remote-v2" in result.output
        assert _store(tmp_path).read("perks").payload.version == "remote-v2"

    def test_load_json(self, base_args):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "load", "perks", "--json"])

        assert result.exit_code == 0
        data = orjson.loads(result.output)
        assert data["version"] == "remote-v2"
        assert data["lastUpdated"] == 2000

    def test_load_bundled_then_reports_newer(self, tmp_path, base_args):
        """Test that a newer remote copy found in the background is reported."""
        bundle = tmp_path / "bundle"
        bundle.mkdir()
        (bundle / "perks.json").write_bytes(
            orjson.dumps({"version": "bundled-v1", "lastUpdated": 1000, "perks": {}})
        )

        runner = CliRunner()
        result = runner.invoke(
            cli, [*base_args, "--bundled-path", str(bundle), "load", "perks"]
        )

        assert result.exit_code == 0
        assert "Version: bundled-v1" in result.output
        assert "Newer content cached" in result.output
        assert _store(tmp_path).read("perks").payload.version == "remote-v2"

    def test_load_unavailable(self, base_args):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "load", "spells"])

        assert result.exit_code != 0
        assert "No reference content could be loaded for 'spells'" in result.output

    def test_load_invalid_id(self, base_args):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "load", "../perks"])

        assert result.exit_code != 0
        assert "Invalid path segment" in result.output


class TestRefresh:
    """Test refresh command."""

    def test_refresh_overwrites_cache(self, tmp_path, base_args):
        _store(tmp_path).write("perks", ContentPayload("newer-local", 9999, {}), ttl=3600)

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "refresh", "perks"])

        assert result.exit_code == 0
        assert "Refreshed 'perks' (version remote-v2)" in result.output
        assert _store(tmp_path).read("perks").payload.version == "remote-v2"

    def test_refresh_failure(self, tmp_path, base_args):
        _store(tmp_path).write("spells", ContentPayload("v1", 1, {}), ttl=3600)

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "refresh", "spells"])

        assert result.exit_code != 0
        assert "Could not refresh 'spells'" in result.output
        assert _store(tmp_path).read("spells").payload.version == "v1"


class TestClear:
    """Test clear command."""

    def test_clear_single(self, tmp_path, base_args):
        store = _store(tmp_path)
        store.write("perks", ContentPayload("v1", 1, {}), ttl=3600)
        store.write("spells", ContentPayload("v1", 1, {}), ttl=3600)

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "clear", "perks"])

        assert result.exit_code == 0
        assert "Cleared 'perks'" in result.output
        assert _store(tmp_path).resource_ids() == ["spells"]

    def test_clear_all_with_yes(self, tmp_path, base_args):
        _store(tmp_path).write("perks", ContentPayload("v1", 1, {}), ttl=3600)

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "clear", "--yes"])

        assert result.exit_code == 0
        assert "Cleared all cached content" in result.output
        assert _store(tmp_path).resource_ids() == []

    def test_clear_all_aborted(self, tmp_path, base_args):
        _store(tmp_path).write("perks", ContentPayload("v1", 1, {}), ttl=3600)

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "clear"], input="n\n")

        assert result.exit_code != 0
        assert _store(tmp_path).resource_ids() == ["perks"]


class TestList:
    """Test list command."""

    def test_list_prefix(self, tmp_path, remote_dir, base_args):
        rules = remote_dir / "rules"
        rules.mkdir()
        for name in ("10. Magic.md.json", "2. Combat.md.json", "1. Intro.md.json"):
            (rules / name).write_bytes(b"{}")

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "list", "rules"])

        assert result.exit_code == 0
        lines = [line.strip("• ") for line in result.output.splitlines() if line.strip()]
        assert lines == ["rules/1. Intro.md", "rules/2. Combat.md", "rules/10. Magic.md"]
        assert _store(tmp_path).read_listing("rules") is not None

    def test_list_top_level(self, base_args):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "list"])

        assert result.exit_code == 0
        assert "perks" in result.output

    def test_list_unavailable(self, base_args):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "list", "spells"])

        assert result.exit_code != 0
        assert "Could not list resources under 'spells'" in result.output

    def test_stats_show_listing_age(self, tmp_path, base_args):
        _store(tmp_path).write_listing("rules", ["rules/core.md"], ttl=3600)

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "stats"])

        assert result.exit_code == 0
        assert "Listing fetched" in result.output
        assert "Just now" in result.output


class TestDiagnostics:
    """Test stats and info commands."""

    def test_stats_empty(self, base_args):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "stats"])

        assert result.exit_code == 0
        assert "Cache Statistics" in result.output
        assert "Entries" in result.output

    def test_stats_lists_resources(self, tmp_path, base_args):
        _store(tmp_path).write("perks", ContentPayload("v1", 1, {}), ttl=3600)

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "stats"])

        assert result.exit_code == 0
        assert "Cached resources" in result.output
        assert "perks" in result.output

    def test_info(self, tmp_path, base_args):
        _store(tmp_path).write("perks", ContentPayload("v7", 1, {}), ttl=3600)

        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "info", "perks"])

        assert result.exit_code == 0
        assert "v7" in result.output
        assert "fresh" in result.output

    def test_info_missing(self, base_args):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "info", "perks"])

        assert result.exit_code == 0
        assert "'perks' is not cached" in result.output


class TestConfigOption:
    def test_config_file(self, tmp_path, remote_dir):
        config_path = tmp_path / "refcache.json"
        CacheConfig(cache_dir=tmp_path / "from-file", remote_base_url=str(remote_dir)).save(
            config_path
        )

        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_path), "load", "perks"])

        assert result.exit_code == 0
        assert FileCacheStore(tmp_path / "from-file").read("perks") is not None

    def test_invalid_config_file(self, tmp_path):
        config_path = tmp_path / "bad.json"
        config_path.write_text("{not json")

        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_path), "stats"])

        assert result.exit_code != 0
        assert "Error" in result.output
