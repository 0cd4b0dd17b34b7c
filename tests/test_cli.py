"""
Unit tests for CLI functionality.

Tests the artifact-sync command-line interface commands: init, sync, move,
create, audit and watch.
"""

import json
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch
from click.testing import CliRunner

from artifact_sync.cli import main
from config.defaults import ENV_VAR_MAPPING


BEHAVIOUR_SOURCE = "class {name}(Behaviour):\n    pass\n"


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for env_var in ENV_VAR_MAPPING:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("ARTIFACT_SYNC_LOG_TO_FILE", raising=False)
    monkeypatch.delenv("ARTIFACT_SYNC_LOG_LEVEL", raising=False)


class CliTestBase:
    """Shared project setup"""

    @pytest.fixture(autouse=True)
    def _project(self, tmp_path):
        self.root = tmp_path.resolve()
        self.runner = CliRunner()

    def write(self, relative: str, content: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def invoke(self, *args):
        return self.runner.invoke(main, ["--root", str(self.root), *args])


class TestInitCommand(CliTestBase):
    """Test the init command"""

    def test_init_writes_config(self):
        result = self.invoke("init")

        assert result.exit_code == 0
        config_file = self.root / ".artifact-sync" / "config.json"
        assert config_file.exists()
        assert json.loads(config_file.read_text())["artifact_extension"] == ".asset"

    def test_init_already_initialized(self):
        self.invoke("init")

        result = self.invoke("init")

        assert result.exit_code == 0
        assert "already initialized" in result.output

    def test_init_force(self):
        self.invoke("init")

        result = self.invoke("init", "--force")

        assert result.exit_code == 0
        assert "Created" in result.output


class TestSyncCommand(CliTestBase):
    """Test the sync command"""

    def test_sync_paths(self):
        self.write("Scripts/Foo.py", BEHAVIOUR_SOURCE.format(name="Foo"))

        result = self.invoke("sync", str(self.root / "Scripts" / "Foo.py"))

        assert result.exit_code == 0
        assert (self.root / "Scripts" / "Foo.asset").is_file()

    def test_sync_all(self):
        self.write("Scripts/Foo.py", BEHAVIOUR_SOURCE.format(name="Foo"))
        self.write("Scripts/Bar.py", BEHAVIOUR_SOURCE.format(name="Bar"))
        self.write("Scripts/util.py", "def helper():\n    pass\n")

        result = self.invoke("sync", "--all", "--json")

        assert result.exit_code == 0
        assert (self.root / "Scripts" / "Foo.asset").is_file()
        assert (self.root / "Scripts" / "Bar.asset").is_file()
        assert not (self.root / "Scripts" / "util.asset").exists()

    def test_sync_json_report(self):
        self.write("Foo.py", BEHAVIOUR_SOURCE.format(name="Foo"))

        result = self.runner.invoke(
            main, ["--root", str(self.root), "--log-level", "CRITICAL", "sync", "--json", "Foo.py"]
        )

        report = json.loads(result.output)
        assert report["counts"]["created"] == 1
        assert report["has_errors"] is False

    def test_sync_nothing_given(self):
        result = self.invoke("sync")

        assert result.exit_code == 0
        assert "No sources given" in result.output

    def test_sync_error_exit_code(self):
        """Test an ERROR outcome makes the command fail"""
        self.write("Foo.py", BEHAVIOUR_SOURCE.format(name="Foo"))

        with patch("core.registry.store.FileArtifactStore.create", side_effect=OSError("disk full")):
            result = self.invoke("sync", "Foo.py")

        assert result.exit_code == 1


class TestMoveAndCreateCommands(CliTestBase):
    """Test the move and create commands"""

    def test_move_relocates_artifact(self):
        self.write("A/Foo.py", BEHAVIOUR_SOURCE.format(name="Foo"))
        self.invoke("sync", "A/Foo.py")
        (self.root / "B").mkdir()
        (self.root / "A" / "Foo.py").rename(self.root / "B" / "Foo.py")

        result = self.invoke("move", "A/Foo.py", "B/Foo.py")

        assert result.exit_code == 0
        assert (self.root / "B" / "Foo.asset").is_file()
        assert not (self.root / "A" / "Foo.asset").exists()

    def test_create_with_display_name(self):
        self.write("Door.py", BEHAVIOUR_SOURCE.format(name="Door"))

        result = self.invoke("create", "Door.py", "--name", "Front Door")

        assert result.exit_code == 0
        document = json.loads((self.root / "Door.asset").read_text())
        assert document["identifier"] == "FrontDoor"

    def test_create_not_a_source(self):
        self.write("notes.txt", "hello")

        result = self.invoke("create", "notes.txt")

        assert result.exit_code == 0
        assert "Not a *.py source" in result.output


class TestAuditCommand(CliTestBase):
    """Test the audit command"""

    def test_audit_healthy(self):
        self.write("Foo.py", BEHAVIOUR_SOURCE.format(name="Foo"))
        self.invoke("sync", "--all")

        result = self.invoke("audit")

        assert result.exit_code == 0
        assert "0 issues" in result.output

    def test_audit_reports_issues(self):
        self.write("Manual.asset", json.dumps({"identifier": "Manual"}))

        result = self.runner.invoke(
            main, ["--root", str(self.root), "--log-level", "CRITICAL", "audit", "--json"]
        )

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["issues"][0]["type"] == "unlinked_artifact"


class TestWatchCommand(CliTestBase):
    """Test the watch command"""

    def test_watch_start_failure(self):
        watcher = Mock()
        watcher.start_monitoring = AsyncMock(return_value=False)

        with patch("artifact_sync.cli.SourceTreeWatcher", return_value=watcher):
            result = self.invoke("watch")

        assert result.exit_code == 1
        assert "Failed to start watching" in result.output

    def test_watch_stops_on_interrupt(self):
        watcher = Mock()
        watcher.start_monitoring = AsyncMock(return_value=True)
        watcher.stop_monitoring = AsyncMock()

        with patch("artifact_sync.cli.SourceTreeWatcher", return_value=watcher), \
                patch("artifact_sync.cli.asyncio.sleep", AsyncMock(side_effect=KeyboardInterrupt)):
            result = self.invoke("watch")

        assert result.exit_code == 0
        assert "Stopped" in result.output
        watcher.stop_monitoring.assert_awaited_once()
