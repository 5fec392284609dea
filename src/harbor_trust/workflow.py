"""
Issuance policy on top of :class:`~harbor_trust.ca.CertificateAuthority`.

``ensure`` fills gaps, ``renew`` always reissues the leaf, and ``provision``
is the registry bring-up path which also refuses loopback hostnames. The CA
itself issues for any name.
"""

from __future__ import annotations

import logging

from .ca import CertificateAuthority, build_san_list
from .errors import ValidationError
from .models import CertStatus

log = logging.getLogger("harbor-certs")

LOOPBACK_HOSTNAMES = ("localhost", "127.0.0.1")


def _require_hostname(hostname: str | None, action: str, alt_names: str | None) -> str:
    if not hostname or not hostname.strip():
        raise ValidationError(f"--hostname is required for {action}.")
    # Reject bad SAN input before anything is written.
    build_san_list(hostname, alt_names)
    return hostname.strip()


def ensure(ca: CertificateAuthority, hostname: str | None, alt_names: str | None = None) -> list[CertStatus]:
    hostname = _require_hostname(hostname, "ensure", alt_names)
    ca.ensure_root()
    if not ca.store.server_exists():
        ca.issue_server_certificate(hostname, alt_names)
    else:
        log.debug("server certificate present, leaving it untouched")
    return ca.status()


def renew(ca: CertificateAuthority, hostname: str | None, alt_names: str | None = None) -> list[CertStatus]:
    hostname = _require_hostname(hostname, "renew", alt_names)
    ca.ensure_root()
    ca.issue_server_certificate(hostname, alt_names)
    return ca.status()


def provision(
    ca: CertificateAuthority,
    hostname: str | None,
    alt_names: str | None = None,
    force_renew: bool = False,
) -> list[CertStatus]:
    hostname = _require_hostname(hostname, "provision", alt_names)
    if hostname in LOOPBACK_HOSTNAMES:
        raise ValidationError("Do not use localhost/127.0.0.1. Use a LAN IP or DNS name.")

    statuses = renew(ca, hostname, alt_names) if force_renew else ensure(ca, hostname, alt_names)
    log.info("TLS certificate: %s", ca.store.server_fullchain)
    log.info("TLS private key: %s", ca.store.server_key)
    log.info("Trust the CA on clients before push/pull: %s", ca.store.ca_cert)
    if force_renew:
        log.info("Restart the registry to pick up the renewed certificate.")
    return statuses
