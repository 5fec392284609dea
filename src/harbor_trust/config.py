from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv

from .errors import ValidationError
from .models import KeyMaterialStore

DEFAULT_WINDOWS_STORE = "CurrentUser\\Root"


@dataclass(frozen=True)
class Config:
    cert_dir: Path = Path("certs")
    cert_days: int = 825
    ca_days: int = 3650
    key_size: int = 4096
    ca_cert_file: Path | None = None
    windows_store: str = DEFAULT_WINDOWS_STORE
    linux_ca_filename: str = "harbor-local-ca.crt"
    home: Path = field(default_factory=Path.home)

    @property
    def store(self) -> KeyMaterialStore:
        return KeyMaterialStore(self.cert_dir)

    @property
    def trust_cert_file(self) -> Path:
        return self.ca_cert_file or self.store.ca_cert


def positive_int(value: Any, name: str) -> int:
    s = str(value).strip()
    if not (s.isascii() and s.isdigit()):
        raise ValidationError(f"{name} must be a number.")
    n = int(s)
    if n < 1:
        raise ValidationError(f"{name} must be positive.")
    return n


def load_config(**overrides: Any) -> Config:
    """
    Defaults, then HARBOR_* environment (``.env`` honoured), then explicit
    overrides. ``None`` overrides are ignored so argparse namespaces can be
    passed straight through.
    """
    load_dotenv(find_dotenv(usecwd=True), override=False)
    env = os.environ

    cfg = Config(
        cert_dir=Path(env.get("HARBOR_CERT_DIR", "certs")),
        cert_days=positive_int(env.get("HARBOR_CERT_DAYS", 825), "cert-days"),
        ca_days=positive_int(env.get("HARBOR_CA_DAYS", 3650), "ca-days"),
        key_size=positive_int(env.get("HARBOR_KEY_SIZE", 4096), "key-size"),
        ca_cert_file=Path(env["HARBOR_CA_CERT_FILE"]) if env.get("HARBOR_CA_CERT_FILE") else None,
        windows_store=env.get("HARBOR_WINDOWS_STORE", DEFAULT_WINDOWS_STORE),
        linux_ca_filename=env.get("HARBOR_LINUX_CA_FILENAME", "harbor-local-ca.crt"),
    )

    given = {k: v for k, v in overrides.items() if v is not None}
    if "cert_dir" in given:
        given["cert_dir"] = Path(given["cert_dir"])
    if "ca_cert_file" in given:
        given["ca_cert_file"] = Path(given["ca_cert_file"])
    for key, label in (("cert_days", "cert-days"), ("ca_days", "ca-days"), ("key_size", "key-size")):
        if key in given:
            given[key] = positive_int(given[key], label)
    return replace(cfg, **given)
