"""Parsing and validation of source/target locations."""

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from shared.logger import get_logger

from .exceptions import (
    MissingArgumentError,
    MixedHostError,
    MixedLocalityError,
    UnsupportedRemoteTargetError,
)

logger = get_logger(__name__)


class Protocol(str, Enum):
    """How a location is reached."""

    LOCAL = "local"
    SSH = "ssh"
    MODULE = "module"


# HOST::MODULE/PATH (rsync daemon module)
MODULE_PATTERN = re.compile(r"^(?P<host>[^/:\s]+)::(?P<module>[^/]+)/?(?P<path>.*)$")
# [USER@]HOST:PATH (remote shell); a slash before the colon means a local path
SSH_PATTERN = re.compile(r"^(?:(?P<user>[^@/:\s]+)@)?(?P<host>[^@/:\s]+):(?P<path>.*)$")


@dataclass(frozen=True)
class PathSpec:
    """A parsed source or target location."""

    raw: str
    protocol: Protocol
    path: str
    host: Optional[str] = None
    user: Optional[str] = None
    module: Optional[str] = None
    abs_path: Optional[Path] = None
    # absolute but with symlinks kept, so a source keeps its own name
    local_path: Optional[Path] = None

    @property
    def remote(self) -> bool:
        return self.protocol != Protocol.LOCAL

    def sync_arg(self, nested: bool) -> str:
        """
        Render this location as a sync tool argument.

        Args:
            nested: Copy the directory itself rather than its contents

        Returns:
            Argument string; without nesting it ends in "/" so only the
            contents are copied
        """
        arg = self.raw if self.remote else str(self.local_path)
        if not nested and not arg.endswith("/"):
            arg += "/"
        return arg


def parse_path(raw: str) -> PathSpec:
    """
    Parse a location string into a PathSpec.

    Rules are tried in order: HOST::MODULE/PATH, [USER@]HOST:PATH, then a
    local path resolved to its canonical absolute form.

    Args:
        raw: Location string as given by the user

    Returns:
        Parsed PathSpec

    Raises:
        MissingArgumentError: If the location is empty
    """
    if not raw:
        raise MissingArgumentError("Location must not be empty")

    stripped = raw.rstrip("/") or "/"

    match = MODULE_PATTERN.match(stripped)
    if match:
        return PathSpec(
            raw=stripped,
            protocol=Protocol.MODULE,
            host=match.group("host"),
            module=match.group("module"),
            path=match.group("path"),
        )

    match = SSH_PATTERN.match(stripped)
    if match:
        return PathSpec(
            raw=stripped,
            protocol=Protocol.SSH,
            host=match.group("host"),
            user=match.group("user"),
            path=match.group("path"),
        )

    return PathSpec(
        raw=stripped,
        protocol=Protocol.LOCAL,
        path=stripped,
        abs_path=Path(stripped).expanduser().resolve(),
        local_path=Path(os.path.abspath(os.path.expanduser(stripped))),
    )


def check_sources(sources: Sequence[PathSpec]) -> None:
    """
    Check that sources can be handed to a single sync invocation.

    Raises:
        MissingArgumentError: If no source is given
        MixedLocalityError: If local and remote sources are mixed
        MixedHostError: If remote sources come from different hosts
    """
    if not sources:
        raise MissingArgumentError("Please specify at least one source")

    remote_flags = {s.remote for s in sources}
    if len(remote_flags) > 1:
        raise MixedLocalityError("Sources must be all local or all remote")

    if remote_flags == {True}:
        hosts = {s.host for s in sources}
        if len(hosts) > 1:
            raise MixedHostError(
                f"Remote sources must all be from the same machine, got: {', '.join(sorted(hosts))}"
            )


def check_target(target: PathSpec) -> Path:
    """
    Check that the target is usable and return its absolute path.

    Raises:
        UnsupportedRemoteTargetError: If the target is remote
    """
    if target.remote:
        raise UnsupportedRemoteTargetError(
            f"Target can't be remote at the moment: {target.raw}"
        )
    return target.abs_path


def resolve_sources(raw_sources: List[str]) -> List[PathSpec]:
    """Parse and validate a list of source strings."""
    sources = [parse_path(s) for s in raw_sources]
    check_sources(sources)
    logger.debug(f"Resolved sources: {[s.raw for s in sources]}")
    return sources
