from __future__ import annotations

import shutil
import subprocess
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from diffview import __version__
from diffview.__main__ import cli
from tests.helpers.git import init_git_repo_with_commit

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("DIFFVIEW_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("DIFFVIEW_DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    root = init_git_repo_with_commit(
        tmp_path.resolve() / "repo",
        {"README.md": "# test\n", "src/app.py": "print('v1')\n"},
    )
    (root / "src" / "app.py").write_text("print('v2')\n", encoding="utf-8")
    monkeypatch.chdir(root)
    return root


def _head_message(repo: Path) -> str:
    return subprocess.run(
        ["git", "log", "-1", "--format=%s"],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    ).stdout.strip()


def test_version_flag_prints_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert result.output.strip() == f"diffview {__version__}"


def test_without_a_command_help_is_shown() -> None:
    result = CliRunner().invoke(cli, [])

    assert result.exit_code == 0
    assert "status" in result.output
    assert "commit" in result.output


def test_status_lists_repositories_and_dirty_files(repo: Path) -> None:
    result = CliRunner().invoke(cli, ["status"])

    assert result.exit_code == 0, result.output
    assert f"* {repo}" in result.output
    assert "M src/app.py" in result.output
    assert "HEAD: Initial commit" in result.output


def test_diff_prints_a_unified_diff_against_the_working_copy(repo: Path) -> None:
    result = CliRunner().invoke(cli, ["diff", "src/app.py", "--mode", "commit"])

    assert result.exit_code == 0, result.output
    assert "-print('v1')" in result.output
    assert "+print('v2')" in result.output
    assert "+++ Filesystem / Editor" in result.output


def test_diff_of_a_directory_picks_its_dirty_file(repo: Path) -> None:
    result = CliRunner().invoke(cli, ["diff", "src", "--mode", "commit"])

    assert result.exit_code == 0, result.output
    assert "+print('v2')" in result.output


def test_commit_records_tracked_changes(repo: Path) -> None:
    result = CliRunner().invoke(cli, ["commit", "-m", "Bump app"])

    assert result.exit_code == 0, result.output
    assert "Commit created" in result.output
    assert _head_message(repo) == "Bump app"


def test_amend_rewrites_the_head_commit(repo: Path) -> None:
    result = CliRunner().invoke(cli, ["commit", "--amend", "-m", "Initial commit, amended"])

    assert result.exit_code == 0, result.output
    assert "Commit amended" in result.output
    assert _head_message(repo) == "Initial commit, amended"


def test_failed_commit_exits_nonzero(repo: Path) -> None:
    runner = CliRunner()
    assert runner.invoke(cli, ["commit", "-m", "Bump app"]).exit_code == 0

    result = runner.invoke(cli, ["commit", "-m", "Nothing left"])

    assert result.exit_code == 1
    assert "Error creating commit" in result.output


def test_debug_flag_exports_the_log(repo: Path, tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["--debug", "status"])

    assert result.exit_code == 0, result.output
    exported = (tmp_path / "data" / "debug.log").resolve()
    assert exported.exists()
    assert "diffview Debug Log Export" in exported.read_text(encoding="utf-8")


def test_when_configured_vcs_has_no_adapter_then_the_command_fails(
    repo: Path, tmp_path: Path
) -> None:
    config_path = tmp_path / "hg.toml"
    config_path.write_text('[general]\nvcs_type = "hg"\n', encoding="utf-8")

    result = CliRunner().invoke(cli, ["--config", str(config_path), "status"])

    assert result.exit_code == 1
    assert "No adapter for `hg` repositories" in result.output
