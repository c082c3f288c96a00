"""Snapshot Backup - rsync snapshots with multi-level history rotation."""

from .backup import BackupConfig, BackupResult, SnapshotBackup, run_backup
from .history import HistoryEntry
from .paths import PathSpec, parse_path
from .rotator import HistoryRotator
from .stager import SnapshotStager

__all__ = [
    "BackupConfig",
    "BackupResult",
    "HistoryEntry",
    "HistoryRotator",
    "PathSpec",
    "SnapshotBackup",
    "SnapshotStager",
    "parse_path",
    "run_backup",
]
