"""
Error taxonomy shared by the certificate and trust commands.

Every failure is fatal to the current invocation. The CLI catches
:class:`HarborTrustError` once, prints ``ERROR: <tag>: <message>`` and
exits 1.
"""

from __future__ import annotations


class HarborTrustError(Exception):
    tag = "error"

    def __str__(self) -> str:
        return f"{self.tag}: {super().__str__()}"


class ValidationError(HarborTrustError):
    tag = "validation"


class ToolMissing(HarborTrustError):
    tag = "tool-missing"


class CryptoToolMissing(ToolMissing):
    tag = "crypto-tool-missing"


class CertIOError(HarborTrustError):
    tag = "io"


class CertFileMissing(HarborTrustError):
    tag = "cert-file-missing"


class PrivilegeRequired(HarborTrustError):
    tag = "privilege-required"


class PlatformUnsupported(HarborTrustError):
    tag = "platform-unsupported"


class ToolInvocationFailed(HarborTrustError):
    tag = "tool-failed"

    def __init__(self, message: str, *, command: list[str] | None = None, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr
