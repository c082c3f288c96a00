"""History entry records and their on-disk names.

A history entry lives in the target root as a directory named
``hist.<ts>`` (level 1) or ``hist<N>.<ts>`` (level N > 1), where ``<ts>``
is ``YYYY-MM-DD@HH:MM:SS+00`` in UTC. A trailing ``t`` marks the entry
tagged for promotion to the next level.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from .exceptions import HistoryNameError

TIMESTAMP_FORMAT = "%Y-%m-%d@%H:%M:%S+00"
TAG_SUFFIX = "t"
STAGING_SUFFIX = ".tmp"

TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}@\d{2}:\d{2}:\d{2}\+00$")
NAME_PATTERN = re.compile(r"^hist(?P<level>[1-9]\d*)?\.(?P<timestamp>.+?)(?P<tag>t)?$")


def format_timestamp(moment: datetime) -> str:
    """Format a moment as a UTC, second precision, lexically sortable string."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """
    Parse a timestamp produced by format_timestamp().

    Raises:
        HistoryNameError: If the value is not a valid timestamp
    """
    if not TIMESTAMP_PATTERN.match(value):
        raise HistoryNameError(f"Malformed timestamp: {value!r}")
    try:
        parsed = datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError as e:
        raise HistoryNameError(f"Invalid timestamp {value!r}: {e}") from e
    return parsed.replace(tzinfo=timezone.utc)


def level_prefix(level: int) -> str:
    """Directory name prefix for a history level ("hist", "hist2", ...)."""
    if level < 1:
        raise ValueError(f"History level must be >= 1, got {level}")
    return "hist" if level == 1 else f"hist{level}"


@dataclass(frozen=True)
class HistoryEntry:
    """A snapshot kept in the history of a target root."""

    level: int
    timestamp: datetime
    tagged: bool = False

    @property
    def name(self) -> str:
        suffix = TAG_SUFFIX if self.tagged else ""
        return f"{level_prefix(self.level)}.{format_timestamp(self.timestamp)}{suffix}"

    @classmethod
    def parse(cls, name: str) -> "HistoryEntry":
        """
        Build an entry from a directory name.

        Raises:
            HistoryNameError: If the name is not a history entry name
        """
        if name.endswith(STAGING_SUFFIX):
            raise HistoryNameError(f"Staging directory is not a history entry: {name}")

        match = NAME_PATTERN.match(name)
        if not match:
            raise HistoryNameError(f"Not a history entry name: {name}")

        level = int(match.group("level") or 1)
        # "hist1." is never written, level 1 has no number
        if match.group("level") == "1":
            raise HistoryNameError(f"Level 1 entries carry no level number: {name}")

        return cls(
            level=level,
            timestamp=parse_timestamp(match.group("timestamp")),
            tagged=match.group("tag") is not None,
        )

    def promoted(self) -> "HistoryEntry":
        """The same snapshot one level up, untagged."""
        return replace(self, level=self.level + 1, tagged=False)

    def with_tag(self) -> "HistoryEntry":
        return replace(self, tagged=True)


@dataclass
class LevelScan:
    """Entries found at one level, newest first, plus unparseable names."""

    level: int
    entries: List[HistoryEntry] = field(default_factory=list)
    malformed: List[str] = field(default_factory=list)


def _sort_newest_first(entries: List[HistoryEntry]) -> List[HistoryEntry]:
    return sorted(entries, key=lambda e: (e.timestamp, e.tagged), reverse=True)


def scan_level(root: Path, level: int) -> LevelScan:
    """
    Collect the history entries of one level under a target root.

    Args:
        root: Target root directory
        level: History level to scan

    Returns:
        LevelScan with entries sorted newest first
    """
    scan = LevelScan(level=level)
    prefix = f"{level_prefix(level)}."

    if not root.is_dir():
        return scan

    for child in root.iterdir():
        name = child.name
        if not name.startswith(prefix) or name.endswith(STAGING_SUFFIX):
            continue
        try:
            entry = HistoryEntry.parse(name)
        except HistoryNameError:
            scan.malformed.append(name)
            continue
        scan.entries.append(entry)

    scan.entries = _sort_newest_first(scan.entries)
    scan.malformed.sort()
    return scan


def list_history(root: Path) -> List[HistoryEntry]:
    """
    List every well-formed history entry under a target root.

    Returns:
        Entries ordered by level, newest first within a level
    """
    if not root.is_dir():
        return []

    entries = []
    for child in root.iterdir():
        if not child.name.startswith("hist"):
            continue
        try:
            entries.append(HistoryEntry.parse(child.name))
        except HistoryNameError:
            continue

    entries.sort(key=lambda e: e.timestamp, reverse=True)
    entries.sort(key=lambda e: e.level)
    return entries


def utc_now() -> datetime:
    """Current time in UTC, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)
