from __future__ import annotations

from pathlib import Path

from ..errors import ToolInvocationFailed, ToolMissing
from ..models import RemovalOutcome, TrustRecord
from ..utils import normalize_fingerprint
from .base import TrustStoreAdapter

POWERSHELLS = ("pwsh", "powershell.exe", "powershell")


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class WindowsCertStoreAdapter(TrustStoreAdapter):
    """
    ``Cert:\\<store>`` through PowerShell, matched by thumbprint. Scripts
    print a single token (``installed``/``absent``/``removed``) that is
    parsed instead of free text.
    """
    kind = "windows"

    def detect(self) -> bool:
        if self.platform.startswith(("win32", "cygwin", "msys")):
            return True
        if self.platform.startswith(("darwin", "linux")):
            return False
        return bool(self.runner.which("powershell.exe"))

    @property
    def store_path(self) -> str:
        return f"Cert:\\{self.config.windows_store}"

    def locations(self) -> list[str]:
        return [self.store_path]

    def _shell(self) -> str:
        for name in POWERSHELLS:
            found = self.runner.which(name)
            if found:
                return found
        raise ToolMissing("PowerShell not found.")

    def _script(self, script: str) -> str:
        result = self.runner.check([self._shell(), "-NoProfile", "-NonInteractive", "-Command", script])
        lines = [ln.strip() for ln in result.stdout.splitlines() if ln.strip()]
        return lines[-1].lower() if lines else ""

    def _windows_path(self, path: Path) -> str:
        if self.runner.which("cygpath"):
            return self.runner.check(["cygpath", "-w", str(path)]).stdout.strip()
        return str(path)

    def _matches_expr(self, fingerprint: str) -> str:
        return (
            f"Get-ChildItem {_ps_quote(self.store_path)} | "
            f"Where-Object {{ $_.Thumbprint -eq {_ps_quote(fingerprint)} }}"
        )

    def query_installed(self, fingerprint: str) -> list[TrustRecord]:
        fingerprint = normalize_fingerprint(fingerprint)
        token = self._script(
            f"$hits = {self._matches_expr(fingerprint)}; if ($hits) {{ 'installed' }} else {{ 'absent' }}"
        )
        if token not in ("installed", "absent"):
            raise ToolInvocationFailed(f"unexpected PowerShell output: {token!r}")
        return [TrustRecord(self.store_path, fingerprint, token == "installed")]

    def install(self, cert_path: Path) -> str:
        self._script(
            f"Import-Certificate -FilePath {_ps_quote(self._windows_path(cert_path))} "
            f"-CertStoreLocation {_ps_quote(self.store_path)} | Out-Null"
        )
        return self.store_path

    def remove(self, fingerprint: str) -> list[RemovalOutcome]:
        fingerprint = normalize_fingerprint(fingerprint)
        token = self._script(
            f"$items = {self._matches_expr(fingerprint)}; "
            "if ($items) { $items | Remove-Item -Force; 'removed' } else { 'absent' }"
        )
        if token not in ("removed", "absent"):
            raise ToolInvocationFailed(f"unexpected PowerShell output: {token!r}")
        return [RemovalOutcome(self.store_path, token)]  # type: ignore[arg-type]
