"""Invocation of the external sync and remove tools."""

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from shared.logger import get_logger

from .exceptions import ToolNotFoundError

logger = get_logger(__name__)

NICE_ARGS = ["-n19"]


@dataclass
class ToolResult:
    """Outcome of one external tool run."""

    command: List[str]
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ExternalTool:
    """
    An external program called with an argument list, never through a shell.

    A missing executable is fatal (ToolNotFoundError); a non-zero exit is
    reported through ToolResult and left to the caller.
    """

    def __init__(self, name: str, nice: bool = True):
        """
        Initialize the tool.

        Args:
            name: Executable name looked up on PATH
            nice: Run at lowered priority when `nice` is available
        """
        self.name = name
        self.nice = nice

    @property
    def path(self) -> Optional[str]:
        return shutil.which(self.name)

    def ensure_available(self) -> str:
        """
        Return the resolved executable path.

        Raises:
            ToolNotFoundError: If the tool is not on PATH
        """
        path = self.path
        if not path:
            raise ToolNotFoundError(f"Can't find {self.name} in PATH")
        return path

    def build_command(self, args: Sequence[str]) -> List[str]:
        command = [self.ensure_available(), *args]
        if self.nice:
            nice_path = shutil.which("nice")
            if nice_path:
                command = [nice_path, *NICE_ARGS, *command]
        return command

    def run(self, args: Sequence[str]) -> ToolResult:
        """
        Run the tool and wait for it to finish.

        Args:
            args: Arguments after the executable

        Returns:
            ToolResult with the exit status

        Raises:
            ToolNotFoundError: If the tool is missing or can't be started
        """
        command = self.build_command(args)
        logger.debug(f"Running: {' '.join(command)}")
        try:
            completed = subprocess.run(command, check=False)
        except OSError as e:
            raise ToolNotFoundError(f"Can't run {self.name}: {e}") from e
        return ToolResult(command=command, returncode=completed.returncode)


def rsync_tool() -> ExternalTool:
    """The sync tool."""
    return ExternalTool("rsync")


def remove_tool() -> ExternalTool:
    """The recursive remove tool."""
    return ExternalTool("rm")


def remove_tree(tool: ExternalTool, path: Path) -> ToolResult:
    """Recursively delete a path with the remove tool."""
    return tool.run(["-rf", "--", str(path)])
