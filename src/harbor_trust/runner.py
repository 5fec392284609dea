from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass

from .errors import PrivilegeRequired, ToolInvocationFailed, ToolMissing

log = logging.getLogger("harbor-trust")


@dataclass(frozen=True)
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Port for every external program the trust adapters call.

    ``run`` never raises on a non-zero exit; callers inspect the result or
    use :meth:`check`.
    """

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def is_root(self) -> bool:
        geteuid = getattr(os, "geteuid", None)
        return geteuid is not None and geteuid() == 0

    def run(self, args: list[str]) -> CommandResult:
        log.debug("exec: %s", " ".join(args))
        try:
            proc = subprocess.run(args, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise ToolMissing(f"{args[0]} not found") from e
        return CommandResult(list(args), proc.returncode, proc.stdout, proc.stderr)

    def check(self, args: list[str]) -> CommandResult:
        result = self.run(args)
        if not result.ok:
            raise ToolInvocationFailed(
                f"{args[0]} exited {result.returncode}: {result.stderr.strip() or result.stdout.strip()}",
                command=result.args,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    def check_as_root(self, args: list[str]) -> CommandResult:
        """Run ``args`` with root privileges, going through sudo when needed."""
        if self.is_root():
            return self.check(args)
        if self.which("sudo"):
            return self.check(["sudo", *args])
        raise PrivilegeRequired("Need root privileges. Re-run as root or install sudo.")
