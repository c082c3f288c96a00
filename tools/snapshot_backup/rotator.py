"""Multi-level rotation of history entries.

Each configured level keeps either the newest ``n`` entries (``n > 0``) or
the entries younger than ``d`` days (``-d``). Entries falling outside that
window are candidates: at most one of them moves up to the next level per
run and the rest are removed. The newest survivor is then tagged so that
later runs keep promoting at an even cadence instead of every run.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

from shared.logger import get_logger

from .exceptions import InvalidPolicyError
from .history import HistoryEntry, scan_level, utc_now
from .runner import ExternalTool, remove_tree

logger = get_logger(__name__)

DEFAULT_HISTORIES = [-7, 4, 3]


@dataclass
class RotationReport:
    """What one rotation run did to the history."""

    promoted: List[Tuple[str, str]] = field(default_factory=list)
    evicted: List[str] = field(default_factory=list)
    tagged: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_policy(policy: Sequence[int]) -> List[int]:
    """
    Check a retention policy.

    Raises:
        InvalidPolicyError: If the policy is empty or holds non-integers
    """
    if isinstance(policy, (str, bytes)) or not isinstance(policy, Sequence):
        raise InvalidPolicyError("histories must be a list of integers")
    if not policy:
        raise InvalidPolicyError("histories must name at least one level")
    for value in policy:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidPolicyError(f"History value must be an integer, got {value!r}")
    return list(policy)


class HistoryRotator:
    """Applies a retention policy to the history entries of a target root."""

    def __init__(
        self,
        target_root: Path,
        remove_tool: ExternalTool,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.target_root = target_root
        self.remove_tool = remove_tool
        self.clock = clock

    def rotate(self, policy: Sequence[int]) -> RotationReport:
        """
        Rotate every configured level, lowest first.

        Args:
            policy: One value per level; positive keeps that many entries,
                non-positive keeps entries younger than that many days

        Returns:
            RotationReport with the renames and removals performed
        """
        levels = validate_policy(policy)
        report = RotationReport()
        now = self.clock()

        logger.info(f"Rotating backup histories in {self.target_root} ({levels}) ...")
        for level, limit in enumerate(levels, start=1):
            self._rotate_level(level, limit, level == len(levels), now, report)
        return report

    def _rotate_level(
        self,
        level: int,
        limit: int,
        is_highest: bool,
        now: datetime,
        report: RotationReport,
    ) -> None:
        scan = scan_level(self.target_root, level)
        for name in scan.malformed:
            self._skip(report, name, f"Wrong format of history, ignored: {name}")

        entries = scan.entries
        if limit > 0:
            logger.debug(f"Only keeping {limit} level-{level} histories ...")
            survivors, candidates = entries[:limit], entries[limit:]
        else:
            days = -limit
            logger.debug(f"Only keeping {days} day(s) of level-{level} histories ...")
            survivors, candidates = self._split_by_age(entries, days, now, report)

        if not candidates:
            return

        any_tagged = any(entry.tagged for entry in entries)
        promotion_done = False

        # oldest candidate first
        for entry in reversed(candidates):
            if not is_highest and not promotion_done and (entry.tagged or not any_tagged):
                promotion_done = True
                if self._promote(entry, report) and survivors:
                    self._tag(survivors[0], report)
            else:
                self._evict(entry, report)

    def _split_by_age(
        self,
        entries: List[HistoryEntry],
        days: int,
        now: datetime,
        report: RotationReport,
    ) -> Tuple[List[HistoryEntry], List[HistoryEntry]]:
        survivors, candidates = [], []
        max_age = timedelta(days=days)
        for entry in entries:
            if entry.timestamp > now:
                self._skip(report, entry.name, f"History in the future, ignored: {entry.name}")
            elif now - entry.timestamp > max_age:
                candidates.append(entry)
            else:
                survivors.append(entry)
        return survivors, candidates

    def _promote(self, entry: HistoryEntry, report: RotationReport) -> bool:
        target = entry.promoted()
        logger.debug(f"Moving history level: {entry.name} -> {target.name}")
        try:
            (self.target_root / entry.name).rename(self.target_root / target.name)
        except OSError as e:
            self._fail(report, entry.name, f"Failed moving {entry.name} -> {target.name}: {e}")
            return False
        report.promoted.append((entry.name, target.name))
        return True

    def _tag(self, entry: HistoryEntry, report: RotationReport) -> None:
        if entry.tagged:
            return
        tagged = entry.with_tag()
        logger.debug(f"Tagging history for promotion: {entry.name} -> {tagged.name}")
        try:
            (self.target_root / entry.name).rename(self.target_root / tagged.name)
        except OSError as e:
            self._fail(report, entry.name, f"Failed tagging {entry.name}: {e}")
            return
        report.tagged.append(tagged.name)

    def _evict(self, entry: HistoryEntry, report: RotationReport) -> None:
        logger.debug(f"Removing history: {entry.name} ...")
        result = remove_tree(self.remove_tool, self.target_root / entry.name)
        if not result.ok:
            self._fail(
                report,
                entry.name,
                f"Failed removing {entry.name} ({self.remove_tool.name} exit {result.returncode})",
            )
            return
        report.evicted.append(entry.name)

    @staticmethod
    def _skip(report: RotationReport, name: str, message: str) -> None:
        logger.warning(message)
        report.skipped.append(name)
        report.warnings.append(message)

    @staticmethod
    def _fail(report: RotationReport, name: str, message: str) -> None:
        logger.warning(message)
        report.failed.append(name)
        report.warnings.append(message)
