from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ..certinfo import fingerprint_file
from ..errors import PlatformUnsupported, PrivilegeRequired, ToolInvocationFailed, ValidationError
from ..models import RemovalOutcome, TrustRecord
from ..utils import normalize_fingerprint
from .base import TrustStoreAdapter

log = logging.getLogger("harbor-trust")


@dataclass(frozen=True)
class AnchorTool:
    tool: str
    anchor_dir: Path
    refresh: tuple[str, ...]


# Checked in this order; the first tool found on PATH wins.
ANCHOR_TOOLS = (
    AnchorTool("update-ca-certificates", Path("/usr/local/share/ca-certificates"), ("update-ca-certificates",)),
    AnchorTool("update-ca-trust", Path("/etc/pki/ca-trust/source/anchors"), ("update-ca-trust", "extract")),
)


class LinuxAnchorAdapter(TrustStoreAdapter):
    """
    System anchor directory plus the distro's refresh command. Writes need
    root and go through sudo when not already root.
    """
    kind = "linux"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.tools: tuple[AnchorTool, ...] = ANCHOR_TOOLS

    def detect(self) -> bool:
        return self.platform.startswith("linux")

    def _target(self, tool: AnchorTool) -> Path:
        return tool.anchor_dir / self.config.linux_ca_filename

    def active_tool(self) -> AnchorTool:
        for tool in self.tools:
            if self.runner.which(tool.tool):
                return tool
        raise PlatformUnsupported("No CA trust tool found (update-ca-certificates / update-ca-trust).")

    def locations(self) -> list[str]:
        return [str(self._target(t)) for t in self.tools]

    def primary_location(self) -> str:
        return str(self._target(self.active_tool()))

    def _matches(self, path: Path, fingerprint: str) -> bool:
        if not path.is_file():
            return False
        try:
            return fingerprint_file(path) == fingerprint
        except ValidationError:
            # Something else sits under our file name.
            return False

    def query_installed(self, fingerprint: str) -> list[TrustRecord]:
        fingerprint = normalize_fingerprint(fingerprint)
        return [
            TrustRecord(str(self._target(t)), fingerprint, self._matches(self._target(t), fingerprint))
            for t in self.tools
        ]

    def _refresh(self, tool: AnchorTool) -> None:
        self.runner.check_as_root(list(tool.refresh))

    def install(self, cert_path: Path) -> str:
        tool = self.active_tool()
        target = self._target(tool)
        self.runner.check_as_root(["mkdir", "-p", str(target.parent)])
        self.runner.check_as_root(["cp", str(cert_path), str(target)])
        self.runner.check_as_root(["chmod", "0644", str(target)])
        self._refresh(tool)
        return str(target)

    def remove(self, fingerprint: str) -> list[RemovalOutcome]:
        fingerprint = normalize_fingerprint(fingerprint)
        out: list[RemovalOutcome] = []
        for tool in self.tools:
            target = self._target(tool)
            if not self._matches(target, fingerprint):
                out.append(RemovalOutcome(str(target), "absent"))
                continue
            try:
                self.runner.check_as_root(["rm", "-f", str(target)])
            except (ToolInvocationFailed, PrivilegeRequired) as e:
                log.warning("could not remove %s: %s", target, e)
                out.append(RemovalOutcome(str(target), "failed", str(e)))
                continue
            out.append(RemovalOutcome(str(target), "removed"))

        if any(o.state == "removed" for o in out):
            self._refresh(self.active_tool())
        return out
