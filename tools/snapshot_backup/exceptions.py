"""Errors raised by the snapshot backup engine.

Only conditions that must abort a run are exceptions. Everything the next
run can recover from (sync failures, failed renames or removals, odd
history names) is logged and recorded on the run reports instead.
"""


class SnapshotBackupError(Exception):
    """Base class for fatal backup errors."""


class MissingArgumentError(SnapshotBackupError):
    """A required source or target was not given."""


class MixedLocalityError(SnapshotBackupError):
    """Some sources are local and others are remote."""


class MixedHostError(SnapshotBackupError):
    """Remote sources come from more than one host."""


class UnsupportedRemoteTargetError(SnapshotBackupError):
    """The target resolved to a remote location."""


class ToolNotFoundError(SnapshotBackupError):
    """An external tool is missing from PATH or could not be started."""


class TargetCreationError(SnapshotBackupError):
    """The target root could not be created."""


class LockError(SnapshotBackupError):
    """The lock on the target root could not be taken."""


class LockContentionError(LockError):
    """Another run already holds the lock on the target root."""


class InvalidPolicyError(SnapshotBackupError, ValueError):
    """The retention policy is not a non-empty list of integers."""


class HistoryNameError(ValueError):
    """A directory name is not a well-formed history entry name."""
