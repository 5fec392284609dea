from __future__ import annotations

import logging
from pathlib import Path

from ..errors import ToolInvocationFailed, ToolMissing
from ..models import RemovalOutcome, TrustRecord
from ..utils import normalize_fingerprint
from .base import TrustStoreAdapter

log = logging.getLogger("harbor-trust")

SYSTEM_KEYCHAIN = Path("/Library/Keychains/System.keychain")


class MacOSKeychainAdapter(TrustStoreAdapter):
    """
    Login and System keychains via ``security``. Installs go to the login
    keychain only so no admin prompt is needed.
    """
    kind = "macos"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.keychains: dict[str, Path] = {
            "login": self.config.home / "Library" / "Keychains" / "login.keychain-db",
            "system": SYSTEM_KEYCHAIN,
        }

    def detect(self) -> bool:
        return self.platform == "darwin"

    def locations(self) -> list[str]:
        return list(self.keychains)

    def _security(self) -> str:
        tool = self.runner.which("security")
        if not tool:
            raise ToolMissing("security command not found.")
        return tool

    def _has_sha1(self, keychain: Path, fingerprint: str) -> bool:
        if not keychain.exists():
            return False
        result = self.runner.run([self._security(), "find-certificate", "-a", "-Z", str(keychain)])
        for line in result.stdout.splitlines():
            line = line.strip()
            if line.startswith("SHA-1 hash:"):
                if normalize_fingerprint(line.split(":", 1)[1]) == fingerprint:
                    return True
        return False

    def query_installed(self, fingerprint: str) -> list[TrustRecord]:
        fingerprint = normalize_fingerprint(fingerprint)
        return [
            TrustRecord(name, fingerprint, self._has_sha1(path, fingerprint))
            for name, path in self.keychains.items()
        ]

    def install(self, cert_path: Path) -> str:
        login = self.keychains["login"]
        self.runner.check(
            [self._security(), "add-trusted-cert", "-d", "-r", "trustRoot", "-k", str(login), str(cert_path)]
        )
        return "login"

    def remove(self, fingerprint: str) -> list[RemovalOutcome]:
        fingerprint = normalize_fingerprint(fingerprint)
        out: list[RemovalOutcome] = []
        for name, path in self.keychains.items():
            if not self._has_sha1(path, fingerprint):
                out.append(RemovalOutcome(name, "absent"))
                continue
            try:
                self.runner.check([self._security(), "delete-certificate", "-Z", fingerprint, str(path)])
            except ToolInvocationFailed as e:
                log.warning("could not remove from %s keychain: %s", name, e)
                out.append(RemovalOutcome(name, "failed", str(e)))
                continue
            out.append(RemovalOutcome(name, "removed"))
        return out
