"""Shared fixtures: stand-ins for rsync and rm that work on real directories."""

import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Sequence

import pytest

from tools.snapshot_backup.exceptions import ToolNotFoundError
from tools.snapshot_backup.runner import ExternalTool, ToolResult

NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeSyncTool(ExternalTool):
    """Copies local sources like `rsync -a SRC... DEST/` would."""

    def __init__(self, returncode: int = 0, copy: bool = True):
        super().__init__("rsync", nice=False)
        self.returncode = returncode
        self.copy = copy
        self.calls: List[List[str]] = []

    def ensure_available(self) -> str:
        return "/usr/bin/rsync"

    def run(self, args: Sequence[str]) -> ToolResult:
        args = list(args)
        self.calls.append(args)
        if self.copy:
            destination = Path(args[-1].rstrip("/"))
            for source in self._sources(args[:-1]):
                if source.endswith("/"):
                    target = destination
                else:
                    target = destination / Path(source).name
                shutil.copytree(source.rstrip("/") or "/", target, dirs_exist_ok=True)
        return ToolResult(command=["rsync", *args], returncode=self.returncode)

    @staticmethod
    def _sources(args: List[str]) -> List[str]:
        sources = []
        skip_next = False
        for arg in args:
            if skip_next:
                skip_next = False
            elif arg == "--link-dest":
                skip_next = True
            elif not arg.startswith("-"):
                sources.append(arg)
        return sources


class FakeRemoveTool(ExternalTool):
    """Deletes trees like `rm -rf` would, or fails on demand."""

    def __init__(self, returncode: int = 0):
        super().__init__("rm", nice=False)
        self.returncode = returncode
        self.removed: List[str] = []

    def ensure_available(self) -> str:
        return "/bin/rm"

    def run(self, args: Sequence[str]) -> ToolResult:
        path = Path(args[-1])
        if self.returncode == 0:
            shutil.rmtree(path)
            self.removed.append(path.name)
        return ToolResult(command=["rm", *args], returncode=self.returncode)


class MissingTool(ExternalTool):
    """A tool that is never on PATH."""

    def ensure_available(self) -> str:
        raise ToolNotFoundError(f"Can't find {self.name} in PATH")


def make_dirs(root: Path, names: Sequence[str]) -> None:
    """Create history-like directories, each holding one marker file."""
    for name in names:
        (root / name).mkdir(parents=True)
        (root / name / "marker").write_text(name)


def days_ago(days: float, now: datetime = NOW) -> datetime:
    return now - timedelta(days=days)


@pytest.fixture
def sync_tool() -> FakeSyncTool:
    return FakeSyncTool()


@pytest.fixture
def remove_tool() -> FakeRemoveTool:
    return FakeRemoveTool()


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    source = tmp_path / "mydata"
    (source / "docs").mkdir(parents=True)
    (source / "notes.txt").write_text("hello")
    (source / "docs" / "report.txt").write_text("quarterly")
    return source


@pytest.fixture
def target_root(tmp_path: Path) -> Path:
    return tmp_path / "backup"
