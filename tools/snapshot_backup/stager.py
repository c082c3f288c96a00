"""Staging of a new snapshot and its promotion to ``current``."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from shared.logger import get_logger

from .exceptions import TargetCreationError
from .history import HistoryEntry, utc_now
from .paths import PathSpec
from .runner import ExternalTool, ToolResult

logger = get_logger(__name__)

CURRENT_NAME = "current"
STAGING_NAME = ".tmp"
TIMESTAMP_MARKER = ".current.timestamp"

SYNC_FLAGS = ["-a", "--del", "--force", "--ignore-errors", "--ignore-existing"]


@dataclass
class StageReport:
    """What happened while staging one snapshot."""

    sync_result: Optional[ToolResult] = None
    demoted_to: Optional[str] = None
    promoted: bool = False
    promoted_at: Optional[datetime] = None
    warnings: List[str] = field(default_factory=list)


class SnapshotStager:
    """
    Populates ``<root>/.tmp`` with the sync tool and promotes it to ``current``.

    A staging directory left by an interrupted run is reused as is; the
    sync tool only transfers what is still missing.
    """

    def __init__(
        self,
        target_root: Path,
        sync_tool: ExternalTool,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.target_root = target_root
        self.sync_tool = sync_tool
        self.clock = clock

    @property
    def current_dir(self) -> Path:
        return self.target_root / CURRENT_NAME

    @property
    def staging_dir(self) -> Path:
        return self.target_root / STAGING_NAME

    @property
    def marker_file(self) -> Path:
        return self.target_root / TIMESTAMP_MARKER

    def ensure_target_root(self) -> None:
        """
        Create the target root if it does not exist.

        Raises:
            TargetCreationError: If the directory can't be created
        """
        if self.target_root.is_dir():
            return
        logger.debug(f"Creating target directory {self.target_root} ...")
        try:
            self.target_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TargetCreationError(
                f"Can't create target directory {self.target_root}: {e}"
            ) from e

    def build_sync_args(
        self,
        sources: Sequence[PathSpec],
        extra_dir: bool,
        extra_opts: Sequence[str] = (),
    ) -> List[str]:
        """
        Build the sync tool arguments for one staging run.

        Args:
            sources: Validated sources
            extra_dir: Nest each source under its own directory name
            extra_opts: Passthrough options, placed before the fixed flags

        Returns:
            Argument list (without the executable)
        """
        args = [*extra_opts, *SYNC_FLAGS]
        if self.current_dir.exists():
            args += ["--link-dest", str(self.current_dir)]
        args += [source.sync_arg(nested=extra_dir) for source in sources]
        args.append(f"{self.staging_dir}/")
        return args

    def stage(
        self,
        sources: Sequence[PathSpec],
        extra_dir: bool = False,
        extra_opts: Sequence[str] = (),
    ) -> StageReport:
        """
        Copy sources into staging and promote the result to ``current``.

        Sync failures and failed renames are logged and recorded as
        warnings; whatever is left behind is picked up by the next run.

        Args:
            sources: Validated sources
            extra_dir: Nest each source under its own directory name
            extra_opts: Passthrough options for the sync tool

        Returns:
            StageReport describing the run
        """
        report = StageReport()
        self.ensure_target_root()

        if self.staging_dir.exists():
            logger.info(f"Resuming interrupted backup in {self.staging_dir}")

        logger.info(
            f"Starting backup {[s.raw for s in sources]} ==> {self.target_root} ..."
        )
        report.sync_result = self.sync_tool.run(
            self.build_sync_args(sources, extra_dir, extra_opts)
        )
        if not report.sync_result.ok:
            # a partial snapshot is still better than none
            self._warn(
                report,
                f"{self.sync_tool.name} didn't succeed (exit {report.sync_result.returncode}), please recheck",
            )

        if not self.staging_dir.is_dir():
            self._warn(report, f"Nothing staged in {self.staging_dir}, keeping current snapshot")
            return report

        now = self.clock()
        if self.current_dir.exists():
            report.demoted_to = self._demote_current(now, report)

        try:
            self.staging_dir.rename(self.current_dir)
        except OSError as e:
            self._warn(report, f"Failed renaming {self.staging_dir} ==> {CURRENT_NAME}: {e}")
        else:
            logger.debug(f"Renamed {self.staging_dir} ==> {CURRENT_NAME}")
            report.promoted = True
            report.promoted_at = now
            try:
                self._touch_marker(now)
            except OSError as e:
                self._warn(report, f"Failed updating {TIMESTAMP_MARKER}: {e}")

        logger.info(f"Finished backup ==> {self.target_root}")
        return report

    def _demote_current(self, now: datetime, report: StageReport) -> Optional[str]:
        """Rename ``current`` to a level 1 history entry."""
        entry = HistoryEntry(level=1, timestamp=now)
        destination = self.target_root / entry.name
        try:
            self.current_dir.rename(destination)
        except OSError as e:
            self._warn(report, f"Failed renaming {self.current_dir} ==> {entry.name}: {e}")
            return None
        logger.debug(f"Renamed {self.current_dir} ==> {entry.name}")
        return entry.name

    def _touch_marker(self, moment: datetime) -> None:
        stamp = moment.timestamp()
        self.marker_file.touch()
        os.utime(self.marker_file, (stamp, stamp))

    @staticmethod
    def _warn(report: StageReport, message: str) -> None:
        logger.warning(message)
        report.warnings.append(message)
