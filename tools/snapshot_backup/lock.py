"""Exclusive, non-blocking lock on a target root."""

import contextlib
import fcntl
import os
from pathlib import Path
from typing import Iterator

from shared.logger import get_logger

from .exceptions import LockContentionError, LockError

logger = get_logger(__name__)

LOCK_NAME = ".lock"


@contextlib.contextmanager
def exclusive_lock(target_root: Path) -> Iterator[Path]:
    """
    Hold an exclusive lock on a target root for the duration of a block.

    The lock is an flock() on ``<root>/.lock``; the kernel drops it when
    the descriptor is closed or the process dies, so the file left behind
    carries no state.

    Args:
        target_root: Existing target root directory

    Yields:
        Path of the lock file

    Raises:
        LockContentionError: If the lock is already held, by this or
            another process
        LockError: If the lock file can't be opened or locked
    """
    lock_path = target_root / LOCK_NAME
    try:
        fd = os.open(str(lock_path), os.O_CREAT | os.O_RDWR, 0o644)
    except OSError as e:
        raise LockError(f"Can't open lock file {lock_path}: {e}") from e
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        os.close(fd)
        raise LockContentionError(
            f"Can't lock {lock_path}, perhaps another backup process is running"
        )
    except OSError as e:
        os.close(fd)
        raise LockError(f"Can't lock {lock_path}: {e}") from e

    logger.debug(f"Acquired lock {lock_path}")
    try:
        yield lock_path
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
        logger.debug(f"Released lock {lock_path}")
