from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .ca import CertificateAuthority
from .config import load_config
from .errors import CertIOError, HarborTrustError, ValidationError
from .logger import get_logger
from .sync import TrustSynchronizer
from .truststore import select_adapter
from .workflow import ensure, provision, renew


class _Parser(argparse.ArgumentParser):
    # Bad flags are validation failures: exit 1, not argparse's 2.
    def error(self, message: str) -> None:  # type: ignore[override]
        raise ValidationError(message)


def _write_output(out_path: str | None, payload: Any) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if out_path:
        Path(out_path).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def _common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--json", action="store_true", help="Print the result as JSON")
    p.add_argument("--out", "-o", help="Write JSON output to file (implies --json)")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    p.add_argument("--version", action="store_true", help="Print version and exit")


def parse_certs_args(argv: list[str]) -> argparse.Namespace:
    p = _Parser(
        prog="harbor-certs",
        description="Create and renew the local CA and the Harbor server certificate.",
        epilog="Output files: ca.key, ca.crt, harbor.key, harbor.crt, harbor.fullchain.crt",
    )
    p.add_argument("action", nargs="?", default="ensure", choices=["ensure", "renew", "provision", "status"])
    p.add_argument("--hostname", help="Harbor hostname or IP. Required for ensure/renew/provision.")
    p.add_argument(
        "--alt-names",
        help="Extra SAN entries, comma separated (example: DNS:harbor.local,IP:192.168.1.10)",
    )
    p.add_argument("--cert-dir", help="Cert output dir (default: ./certs)")
    p.add_argument("--cert-days", help="Server cert validity days (default: 825)")
    p.add_argument("--ca-days", help="CA cert validity days (default: 3650)")
    p.add_argument("--force-renew", action="store_true", help="provision: always reissue the server cert")
    _common(p)
    return p.parse_args(argv)


def parse_trust_args(argv: list[str]) -> argparse.Namespace:
    p = _Parser(
        prog="harbor-trust",
        description="Install, remove or report the local Harbor CA in the OS trust store.",
        epilog="Linux uses update-ca-certificates (Debian/Ubuntu) or update-ca-trust (RHEL/Fedora) and may need sudo.",
    )
    p.add_argument("action", nargs="?", default="status", choices=["install", "remove", "status"])
    p.add_argument("--cert-file", help="CA cert file (default: ./certs/ca.crt)")
    p.add_argument("--windows-store", help="Windows cert store path suffix (default: CurrentUser\\Root)")
    _common(p)
    return p.parse_args(argv)


def _run(tool: str, argv: list[str], parse, body) -> int:
    log = get_logger(tool)
    try:
        args = parse(argv)
        if args.version:
            print(__version__)
            return 0
        log.setLevel(logging.DEBUG if args.verbose else logging.INFO)
        payload = body(args)
    except HarborTrustError as e:
        log.error("%s", e)
        return 1

    if args.json or args.out:
        try:
            _write_output(args.out, payload)
        except OSError as e:
            log.error("%s", CertIOError(f"cannot write {args.out}: {e}"))
            return 1
    return 0


def _certs_body(args: argparse.Namespace) -> dict[str, Any]:
    config = load_config(cert_dir=args.cert_dir, cert_days=args.cert_days, ca_days=args.ca_days)
    ca = CertificateAuthority(config)
    if args.action == "ensure":
        statuses = ensure(ca, args.hostname, args.alt_names)
    elif args.action == "renew":
        statuses = renew(ca, args.hostname, args.alt_names)
    elif args.action == "provision":
        statuses = provision(ca, args.hostname, args.alt_names, force_renew=args.force_renew)
    else:
        statuses = ca.status()
    return {
        "version": __version__,
        "action": args.action,
        "cert_dir": str(config.cert_dir),
        "certs": [s.to_dict() for s in statuses],
    }


def _trust_body(args: argparse.Namespace) -> dict[str, Any]:
    config = load_config(ca_cert_file=args.cert_file, windows_store=args.windows_store)
    sync = TrustSynchronizer(select_adapter(config), config.trust_cert_file)
    report = getattr(sync, args.action)()
    return {"version": __version__, "action": args.action, "result": report.to_dict()}


def certs_main(argv: list[str] | None = None) -> int:
    return _run("harbor-certs", sys.argv[1:] if argv is None else argv, parse_certs_args, _certs_body)


def trust_main(argv: list[str] | None = None) -> int:
    return _run("harbor-trust", sys.argv[1:] if argv is None else argv, parse_trust_args, _trust_body)
