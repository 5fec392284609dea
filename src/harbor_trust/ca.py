"""
Local certificate authority for the registry's TLS endpoint.

The root (``ca.key`` / ``ca.crt``) is created once and reused; it is never
rotated here. Server leaf material (``harbor.key``, ``harbor.crt``,
``harbor.fullchain.crt``) is rewritten on every issuance. Whether to issue is
the caller's decision, see :mod:`harbor_trust.workflow`.

Key and certificate generation goes through a :class:`CryptoEngine` so tests
can swap in smaller keys or a fake.
"""

from __future__ import annotations

import ipaddress
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from .certinfo import read_pem_cert, read_pem_chain, summarize
from .config import Config
from .errors import CertFileMissing, CertIOError, CryptoToolMissing, ValidationError
from .models import CertStatus, KeyMaterialStore, SubjectAltName
from .utils import is_ipv4_literal

log = logging.getLogger("harbor-certs")

CN_MAX_LENGTH = 64

ROOT_SUBJECT = x509.Name(
    [
        x509.NameAttribute(NameOID.COUNTRY_NAME, "CN"),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, "Local"),
        x509.NameAttribute(NameOID.LOCALITY_NAME, "Local"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "HarborLocal"),
        x509.NameAttribute(NameOID.COMMON_NAME, "Harbor Local CA"),
    ]
)


def _to_general_name(san: SubjectAltName) -> x509.GeneralName:
    if san.kind == "IP":
        return x509.IPAddress(ipaddress.ip_address(san.value))
    if not san.value.isascii():
        raise ValueError("DNS names must be ASCII (use the xn-- A-label form)")
    return x509.DNSName(san.value)


def _parse_san_entry(raw: str) -> SubjectAltName:
    kind, sep, value = raw.partition(":")
    kind = kind.strip().upper()
    value = value.strip()
    if not sep or not value or kind not in ("DNS", "IP"):
        raise ValidationError(f"invalid SAN entry {raw!r}; expected DNS:<name> or IP:<addr>")
    san = SubjectAltName(kind, value)  # type: ignore[arg-type]
    # Build the encoded form now so nothing unencodable reaches the signer.
    try:
        _to_general_name(san)
    except ValueError as e:
        raise ValidationError(f"invalid SAN entry {raw!r}: {e}") from e
    return san


def build_san_list(hostname: str, alt_names: str | None = None) -> list[SubjectAltName]:
    """
    Hostname-derived entry first, then ``alt_names`` (comma separated) in the
    order given.
    """
    hostname = hostname.strip()
    if not hostname:
        raise ValidationError("hostname is empty")
    first = _parse_san_entry(f"IP:{hostname}" if is_ipv4_literal(hostname) else f"DNS:{hostname}")

    sans = [first]
    for item in (alt_names or "").split(","):
        if item.strip():
            sans.append(_parse_san_entry(item))
    return sans


class CryptoEngine:
    """
    Port for key and certificate generation.
    """

    def generate_key(self, bits: int) -> rsa.RSAPrivateKey:
        raise NotImplementedError

    def self_sign(self, key: rsa.RSAPrivateKey, subject: x509.Name, days: int) -> x509.Certificate:
        raise NotImplementedError

    def build_csr(
        self, key: rsa.RSAPrivateKey, common_name: str, sans: list[SubjectAltName]
    ) -> x509.CertificateSigningRequest:
        raise NotImplementedError

    def sign_csr(
        self,
        csr: x509.CertificateSigningRequest,
        ca_cert: x509.Certificate,
        ca_key: rsa.RSAPrivateKey,
        days: int,
    ) -> x509.Certificate:
        raise NotImplementedError


class CryptographyEngine(CryptoEngine):
    """In-process engine backed by the ``cryptography`` package."""

    def generate_key(self, bits: int) -> rsa.RSAPrivateKey:
        try:
            return rsa.generate_private_key(public_exponent=65537, key_size=bits)
        except UnsupportedAlgorithm as e:
            raise CryptoToolMissing(f"RSA key generation unavailable: {e}") from e

    def self_sign(self, key: rsa.RSAPrivateKey, subject: x509.Name, days: int) -> x509.Certificate:
        now = datetime.now(timezone.utc)
        return (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=days))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
            .sign(key, hashes.SHA256())
        )

    def build_csr(
        self, key: rsa.RSAPrivateKey, common_name: str, sans: list[SubjectAltName]
    ) -> x509.CertificateSigningRequest:
        # CN is capped at 64 characters; longer names live in the SAN only,
        # which must then be critical (RFC 5280 4.2.1.6).
        subject = x509.Name([])
        if len(common_name) <= CN_MAX_LENGTH:
            subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        return (
            x509.CertificateSigningRequestBuilder()
            .subject_name(subject)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
            .add_extension(
                x509.SubjectAlternativeName([_to_general_name(s) for s in sans]),
                critical=len(subject) == 0,
            )
            .sign(key, hashes.SHA256())
        )

    def sign_csr(
        self,
        csr: x509.CertificateSigningRequest,
        ca_cert: x509.Certificate,
        ca_key: rsa.RSAPrivateKey,
        days: int,
    ) -> x509.Certificate:
        now = datetime.now(timezone.utc)
        builder = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(ca_cert.subject)
            .public_key(csr.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=days))
        )
        # Requested extensions are copied in CSR order.
        for ext in csr.extensions:
            builder = builder.add_extension(ext.value, critical=ext.critical)
        builder = builder.add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()), critical=False
        )
        return builder.sign(ca_key, hashes.SHA256())


def _write_file(path: Path, data: bytes, mode: int) -> None:
    try:
        path.write_bytes(data)
        os.chmod(path, mode)
    except OSError as e:
        raise CertIOError(f"cannot write {path}: {e}") from e


def _key_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _cert_pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


class CertificateAuthority:
    def __init__(self, config: Config, engine: CryptoEngine | None = None) -> None:
        self.config = config
        self.store: KeyMaterialStore = config.store
        self.engine = engine or CryptographyEngine()

    def _ensure_dir(self) -> None:
        try:
            self.store.cert_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CertIOError(f"cannot create cert dir {self.store.cert_dir}: {e}") from e

    def ensure_root(self) -> bool:
        """Create the root key and certificate unless both exist. Returns True if created."""
        if self.store.root_exists():
            log.debug("reusing CA at %s", self.store.ca_cert)
            return False

        self._ensure_dir()
        log.info("Creating local CA certificate...")
        key = self.engine.generate_key(self.config.key_size)
        cert = self.engine.self_sign(key, ROOT_SUBJECT, self.config.ca_days)
        _write_file(self.store.ca_key, _key_pem(key), 0o600)
        _write_file(self.store.ca_cert, _cert_pem(cert), 0o644)
        return True

    def _load_root(self) -> tuple[x509.Certificate, rsa.RSAPrivateKey]:
        if not self.store.root_exists():
            raise CertFileMissing(f"CA material missing in {self.store.cert_dir}; run ensure first")
        cert = read_pem_cert(self.store.ca_cert)
        try:
            key = serialization.load_pem_private_key(self.store.ca_key.read_bytes(), password=None)
        except OSError as e:
            raise CertIOError(f"cannot read {self.store.ca_key}: {e}") from e
        except (ValueError, TypeError) as e:
            raise ValidationError(f"{self.store.ca_key} is not an unencrypted PEM key: {e}") from e
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ValidationError(f"{self.store.ca_key} is not an RSA key")
        return cert, key

    def issue_server_certificate(
        self, hostname: str, alt_names: str | None = None, days: int | None = None
    ) -> list[SubjectAltName]:
        """
        Issue a fresh leaf for ``hostname`` signed by the root, overwriting
        any existing leaf material. Returns the SAN list that was encoded.
        """
        sans = build_san_list(hostname, alt_names)
        days = days or self.config.cert_days
        ca_cert, ca_key = self._load_root()

        log.info("Issuing server certificate for %s ...", hostname)
        log.debug("subjectAltName = %s", ",".join(str(s) for s in sans))
        key = self.engine.generate_key(self.config.key_size)
        csr = self.engine.build_csr(key, hostname.strip(), sans)
        leaf = self.engine.sign_csr(csr, ca_cert, ca_key, days)

        _write_file(self.store.server_key, _key_pem(key), 0o600)
        _write_file(self.store.server_cert, _cert_pem(leaf), 0o644)
        # Leaf first: TLS terminators expect the served cert at the head of the chain.
        _write_file(self.store.server_fullchain, _cert_pem(leaf) + _cert_pem(ca_cert), 0o644)
        return sans

    def status(self) -> list[CertStatus]:
        out: list[CertStatus] = []
        for label, path in (("CA cert", self.store.ca_cert), ("Server cert", self.store.server_cert)):
            if not path.is_file():
                log.info("%s: missing (%s)", label, path)
                out.append(CertStatus(label, path))
                continue
            summary = summarize(read_pem_cert(path))
            log.info("%s: %s", label, path)
            log.info("  subject: %s", summary.subject)
            log.info("  issuer: %s", summary.issuer)
            log.info("  expires: %s", summary.not_after)
            out.append(CertStatus(label, path, summary))
        return out

    def fullchain(self) -> list[x509.Certificate]:
        return read_pem_chain(self.store.server_fullchain)
