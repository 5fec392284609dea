# harbor_trust/truststore/__init__.py
from __future__ import annotations

from ..config import Config
from ..errors import PlatformUnsupported
from ..runner import CommandRunner
from .base import TrustStoreAdapter
from .linux import LinuxAnchorAdapter
from .macos import MacOSKeychainAdapter
from .windows import WindowsCertStoreAdapter

ADAPTERS: tuple[type[TrustStoreAdapter], ...] = (
    MacOSKeychainAdapter,
    LinuxAnchorAdapter,
    WindowsCertStoreAdapter,
)


def select_adapter(
    config: Config, runner: CommandRunner | None = None, platform: str | None = None
) -> TrustStoreAdapter:
    """First adapter whose detect() matches this host."""
    runner = runner or CommandRunner()
    for cls in ADAPTERS:
        adapter = cls(config, runner, platform)
        if adapter.detect():
            return adapter
    raise PlatformUnsupported("Unsupported platform for trust automation.")


__all__ = [
    "ADAPTERS",
    "LinuxAnchorAdapter",
    "MacOSKeychainAdapter",
    "TrustStoreAdapter",
    "WindowsCertStoreAdapter",
    "select_adapter",
]
