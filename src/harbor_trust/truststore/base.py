from __future__ import annotations

import sys
from pathlib import Path

from ..config import Config
from ..models import PlatformKind, RemovalOutcome, TrustRecord
from ..runner import CommandRunner


class TrustStoreAdapter:
    """
    Contract for one OS trust mechanism.

    Fingerprints are SHA-1, upper-case hex with no separators. Adapters
    always query the live store; nothing is cached between calls.
    """
    kind: PlatformKind

    def __init__(self, config: Config, runner: CommandRunner, platform: str | None = None) -> None:
        self.config = config
        self.runner = runner
        self.platform = platform or sys.platform

    def detect(self) -> bool:
        raise NotImplementedError

    def locations(self) -> list[str]:
        raise NotImplementedError

    def primary_location(self) -> str:
        return self.locations()[0]

    def query_installed(self, fingerprint: str) -> list[TrustRecord]:
        raise NotImplementedError

    def install(self, cert_path: Path) -> str:
        raise NotImplementedError

    def remove(self, fingerprint: str) -> list[RemovalOutcome]:
        raise NotImplementedError

    def describe_status(self, records: list[TrustRecord]) -> list[str]:
        return [f"status({r.store}): {'installed' if r.present else 'not installed'}" for r in records]
