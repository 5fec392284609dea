from __future__ import annotations

import logging
from pathlib import Path

from .certinfo import fingerprint_file
from .errors import ToolInvocationFailed
from .models import TrustReport
from .truststore import TrustStoreAdapter

log = logging.getLogger("harbor-trust")


class TrustSynchronizer:
    """
    Keeps the OS trust store in line with the local root certificate.

    Each call recomputes the fingerprint and re-queries the store.
    """

    def __init__(self, adapter: TrustStoreAdapter, cert_file: Path) -> None:
        self.adapter = adapter
        self.cert_file = Path(cert_file)

    def _begin(self) -> TrustReport:
        fingerprint = fingerprint_file(self.cert_file)
        log.info("platform: %s", self.adapter.kind)
        log.info("cert: %s", self.cert_file)
        log.debug("sha1: %s", fingerprint)
        return TrustReport(platform=self.adapter.kind, fingerprint=fingerprint)

    def status(self) -> TrustReport:
        report = self._begin()
        report.records = self.adapter.query_installed(report.fingerprint)
        for line in self.adapter.describe_status(report.records):
            report.actions.append(line)
            log.info("%s", line)
        log.info("status: %s", "installed" if report.installed else "not installed")
        return report

    def install(self) -> TrustReport:
        report = self._begin()
        report.records = self.adapter.query_installed(report.fingerprint)
        primary = self.adapter.primary_location()
        if any(r.present and r.store == primary for r in report.records):
            report.actions.append(f"already installed in {primary}")
            log.info("already installed in %s.", primary)
            return report

        location = self.adapter.install(self.cert_file)
        report.actions.append(f"installed to {location}")
        log.info("installed to %s.", location)
        report.records = self.adapter.query_installed(report.fingerprint)
        return report

    def remove(self) -> TrustReport:
        report = self._begin()
        outcomes = self.adapter.remove(report.fingerprint)
        failed = [o for o in outcomes if o.state == "failed"]
        for o in outcomes:
            if o.state == "removed":
                report.actions.append(f"removed from {o.store}")
                log.info("removed from %s.", o.store)
        if not any(o.state == "removed" for o in outcomes) and not failed:
            report.actions.append("not found")
            log.info("certificate not found in %s trust stores.", self.adapter.kind)

        if failed:
            raise ToolInvocationFailed(
                "removal failed for " + ", ".join(f"{o.store} ({o.error})" for o in failed)
            )
        report.records = self.adapter.query_installed(report.fingerprint)
        return report
