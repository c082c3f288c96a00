"""Backup run: resolve locations, lock the target, stage and rotate."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from shared.logger import get_logger

from .exceptions import MissingArgumentError
from .history import utc_now
from .lock import exclusive_lock
from .paths import PathSpec, check_target, parse_path, resolve_sources
from .rotator import DEFAULT_HISTORIES, HistoryRotator, RotationReport, validate_policy
from . import runner
from .runner import ExternalTool
from .stager import SnapshotStager, StageReport

logger = get_logger(__name__)


@dataclass
class BackupConfig:
    """Configuration for one backup run."""

    sources: List[str]
    target: str
    histories: List[int] = field(default_factory=lambda: list(DEFAULT_HISTORIES))
    extra_dir: bool = False
    backup: bool = True
    rotate: bool = True
    extra_rsync_opts: List[str] = field(default_factory=list)


@dataclass
class BackupResult:
    """Result of a backup run."""

    success: bool
    message: str
    target_root: Path
    stage: Optional[StageReport] = None
    rotation: Optional[RotationReport] = None
    duration_seconds: float = 0.0

    @property
    def warnings(self) -> List[str]:
        collected = []
        if self.stage:
            collected.extend(self.stage.warnings)
        if self.rotation:
            collected.extend(self.rotation.warnings)
        return collected


class SnapshotBackup:
    """
    Runs the backup lifecycle against one target root.

    Fatal problems (bad arguments, missing tools, an uncreatable or locked
    target) raise SnapshotBackupError subclasses before anything is
    changed. Everything after the lock is taken is best effort and leaves
    state the next run can resume from.
    """

    def __init__(
        self,
        config: BackupConfig,
        sync_tool: Optional[ExternalTool] = None,
        remove_tool: Optional[ExternalTool] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the backup run.

        Args:
            config: Run configuration
            sync_tool: Sync tool override (defaults to rsync)
            remove_tool: Remove tool override (defaults to rm)
            clock: Source of the current UTC time
        """
        self.config = config
        self.sync_tool = sync_tool or runner.rsync_tool()
        self.remove_tool = remove_tool or runner.remove_tool()
        self.clock = clock

    def resolve(self) -> Tuple[List[PathSpec], Path, bool]:
        """
        Parse and validate sources and target.

        Returns:
            Tuple of (sources, target root, effective extra_dir)
        """
        if not self.config.target:
            raise MissingArgumentError("Please specify target")

        sources: List[PathSpec] = []
        if self.config.backup:
            if not self.config.sources:
                raise MissingArgumentError("Please specify source")
            sources = resolve_sources(self.config.sources)

        target_root = check_target(parse_path(self.config.target))
        # several sources would collide at the staging root
        extra_dir = self.config.extra_dir or len(sources) > 1
        return sources, target_root, extra_dir

    def run(self) -> BackupResult:
        """
        Execute the run.

        Returns:
            BackupResult with the staging and rotation reports

        Raises:
            SnapshotBackupError: On any fatal condition
        """
        start = time.monotonic()

        sources, target_root, extra_dir = self.resolve()
        histories = validate_policy(self.config.histories)

        if self.config.backup:
            self.sync_tool.ensure_available()
        if self.config.rotate:
            self.remove_tool.ensure_available()

        stager = SnapshotStager(target_root, self.sync_tool, clock=self.clock)
        stager.ensure_target_root()

        result = BackupResult(success=True, message="OK", target_root=target_root)

        with exclusive_lock(target_root):
            if self.config.backup:
                result.stage = stager.stage(
                    sources,
                    extra_dir=extra_dir,
                    extra_opts=self.config.extra_rsync_opts,
                )
            if self.config.rotate:
                rotator = HistoryRotator(target_root, self.remove_tool, clock=self.clock)
                result.rotation = rotator.rotate(histories)

        warnings = result.warnings
        if warnings:
            result.message = f"OK with {len(warnings)} warning(s)"
        result.duration_seconds = time.monotonic() - start
        return result


def run_backup(config: BackupConfig, **kwargs) -> BackupResult:
    """Run a backup with the given configuration."""
    return SnapshotBackup(config, **kwargs).run()
