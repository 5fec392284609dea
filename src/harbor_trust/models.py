from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal


PlatformKind = Literal["macos", "linux", "windows"]
RemovalState = Literal["removed", "absent", "failed"]


@dataclass(frozen=True)
class KeyMaterialStore:
    """
    Fixed file names under the certificate directory.
    """
    cert_dir: Path

    @property
    def ca_key(self) -> Path:
        return self.cert_dir / "ca.key"

    @property
    def ca_cert(self) -> Path:
        return self.cert_dir / "ca.crt"

    @property
    def server_key(self) -> Path:
        return self.cert_dir / "harbor.key"

    @property
    def server_cert(self) -> Path:
        return self.cert_dir / "harbor.crt"

    @property
    def server_fullchain(self) -> Path:
        return self.cert_dir / "harbor.fullchain.crt"

    def root_exists(self) -> bool:
        return self.ca_key.is_file() and self.ca_cert.is_file()

    def server_exists(self) -> bool:
        return self.server_key.is_file() and self.server_cert.is_file()


@dataclass(frozen=True)
class SubjectAltName:
    kind: Literal["DNS", "IP"]
    value: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"


@dataclass(frozen=True)
class CertSummary:
    """
    Parsed fields from a PEM certificate on disk.
    """
    subject: str
    issuer: str
    serial_number: str
    not_before: str  # ISO-8601 UTC string
    not_after: str   # ISO-8601 UTC string
    sha1: str
    san: list[str] = field(default_factory=list)
    is_ca: bool = False


@dataclass(frozen=True)
class CertStatus:
    label: str
    path: Path
    summary: CertSummary | None = None

    @property
    def present(self) -> bool:
        return self.summary is not None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"label": self.label, "path": str(self.path), "present": self.present}
        if self.summary is not None:
            out.update(
                {
                    "subject": self.summary.subject,
                    "issuer": self.summary.issuer,
                    "serial_number": self.summary.serial_number,
                    "not_before": self.summary.not_before,
                    "not_after": self.summary.not_after,
                    "sha1": self.summary.sha1,
                    "san": list(self.summary.san),
                    "is_ca": self.summary.is_ca,
                }
            )
        return out


@dataclass(frozen=True)
class TrustRecord:
    store: str
    fingerprint: str
    present: bool


@dataclass(frozen=True)
class RemovalOutcome:
    store: str
    state: RemovalState
    error: str | None = None


@dataclass
class TrustReport:
    platform: PlatformKind
    fingerprint: str
    records: list[TrustRecord] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)

    @property
    def installed(self) -> bool:
        return any(r.present for r in self.records)

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "fingerprint": self.fingerprint,
            "installed": self.installed,
            "stores": [{"store": r.store, "present": r.present} for r in self.records],
            "actions": list(self.actions),
        }
