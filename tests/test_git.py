"""Tests for the git source fetcher."""

import asyncio
import shutil
import subprocess
from pathlib import Path

import pytest

from swift_package_size.exceptions import FetchError
from swift_package_size.measurement import git as git_module
from swift_package_size.measurement.git import WORKDIR_PREFIX, GitSourceFetcher
from swift_package_size.measurement.shell import ProcessResult


class TestCloneCommand:
    def test_shallow_clone_of_revision(self, template, tmp_path):
        fetcher = GitSourceFetcher(work_dir=tmp_path, git="/usr/bin/git")

        args = fetcher.clone_command(template, tmp_path / "source")

        assert args[:2] == ["/usr/bin/git", "clone"]
        assert args[args.index("--depth") + 1] == "1"
        assert args[args.index("--branch") + 1] == "main"
        assert args[-2:] == [template.repository_url, str(tmp_path / "source")]


class TestFetch:
    async def test_returns_new_root_with_checkout(self, template, tmp_path, monkeypatch):
        calls = []

        async def fake_run_process(args, cwd=None, timeout=None, env=None):
            calls.append((args, timeout))
            Path(args[-1]).mkdir(parents=True)
            return ProcessResult(args=tuple(args), exit_code=0)

        monkeypatch.setattr(git_module, "run_process", fake_run_process)
        fetcher = GitSourceFetcher(work_dir=tmp_path, timeout=42)

        root = await fetcher.fetch(template)

        assert root.parent == tmp_path
        assert root.name.startswith(WORKDIR_PREFIX)
        assert (root / "source").is_dir()
        assert calls[0][1] == 42

    async def test_each_fetch_gets_its_own_root(self, template, tmp_path, monkeypatch):
        async def fake_run_process(args, cwd=None, timeout=None, env=None):
            return ProcessResult(args=tuple(args), exit_code=0)

        monkeypatch.setattr(git_module, "run_process", fake_run_process)
        fetcher = GitSourceFetcher(work_dir=tmp_path)

        first = await fetcher.fetch(template)
        second = await fetcher.fetch(template)

        assert first != second

    async def test_failure_removes_root(self, template, tmp_path, monkeypatch):
        async def fake_run_process(args, cwd=None, timeout=None, env=None):
            return ProcessResult(args=tuple(args), exit_code=128, stderr="fatal: repository not found")

        monkeypatch.setattr(git_module, "run_process", fake_run_process)
        fetcher = GitSourceFetcher(work_dir=tmp_path)

        with pytest.raises(FetchError, match="repository not found"):
            await fetcher.fetch(template)

        assert list(tmp_path.iterdir()) == []

    async def test_timeout_is_a_fetch_error(self, template, tmp_path, monkeypatch):
        async def fake_run_process(args, cwd=None, timeout=None, env=None):
            return ProcessResult(args=tuple(args), exit_code=-9, stderr="git timed out after 1 seconds", timed_out=True)

        monkeypatch.setattr(git_module, "run_process", fake_run_process)

        with pytest.raises(FetchError, match="timed out"):
            await GitSourceFetcher(work_dir=tmp_path, timeout=1).fetch(template)

        assert list(tmp_path.iterdir()) == []

    async def test_cancelled_clone_removes_root(self, template, tmp_path, monkeypatch):
        started = asyncio.Event()

        async def hanging_run_process(args, cwd=None, timeout=None, env=None):
            started.set()
            await asyncio.Event().wait()

        monkeypatch.setattr(git_module, "run_process", hanging_run_process)
        task = asyncio.create_task(GitSourceFetcher(work_dir=tmp_path).fetch(template))
        await asyncio.wait_for(started.wait(), timeout=5)
        assert [path.name.startswith(WORKDIR_PREFIX) for path in tmp_path.iterdir()] == [True]

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert list(tmp_path.glob(f"{WORKDIR_PREFIX}*")) == []

    async def test_missing_git_binary(self, template, tmp_path):
        work_dir = tmp_path / "work"
        work_dir.mkdir()
        fetcher = GitSourceFetcher(work_dir=work_dir, git=str(tmp_path / "no-git"))

        with pytest.raises(FetchError):
            await fetcher.fetch(template)

        assert list(work_dir.iterdir()) == []


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
async def test_clones_local_repository(template, tmp_path):
    origin = tmp_path / "origin"
    origin.mkdir()
    git = ["git", "-c", "user.email=ci@example.com", "-c", "user.name=CI", "-c", "init.defaultBranch=main"]
    subprocess.run([*git, "init", "-q"], cwd=origin, check=True)
    subprocess.run([*git, "checkout", "-q", "-B", "main"], cwd=origin, check=True)
    (origin / "README.md").write_text("empty app\n", encoding="utf-8")
    subprocess.run([*git, "add", "README.md"], cwd=origin, check=True)
    subprocess.run([*git, "commit", "-q", "-m", "init"], cwd=origin, check=True)

    work_dir = tmp_path / "work"
    work_dir.mkdir()
    local_template = type(template)(
        repository_url=origin.as_uri(),
        revision="main",
        app_name=template.app_name,
        project_file=template.project_file,
    )

    root = await GitSourceFetcher(work_dir=work_dir).fetch(local_template)

    assert (root / "source" / "README.md").read_text(encoding="utf-8") == "empty app\n"
