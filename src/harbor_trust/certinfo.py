from __future__ import annotations

from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from .errors import CertFileMissing, CertIOError, ValidationError
from .models import CertSummary
from .utils import dt_to_utc_iso


def _name_to_str(name: x509.Name) -> str:
    # RFC4514
    try:
        return name.rfc4514_string()
    except ValueError:
        return str(name)


def _get_san(cert: x509.Certificate) -> list[str]:
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    out: list[str] = []
    for gn in ext.value:
        if isinstance(gn, x509.DNSName):
            out.append(f"DNS:{gn.value}")
        elif isinstance(gn, x509.IPAddress):
            out.append(f"IP:{gn.value}")
    return out


def _is_ca(cert: x509.Certificate) -> bool:
    try:
        bc = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
        return bool(bc.ca)
    except x509.ExtensionNotFound:
        return False


def sha1_fingerprint(cert: x509.Certificate) -> str:
    """Upper-case hex SHA-1 of the DER encoding, no separators."""
    return cert.fingerprint(hashes.SHA1()).hex().upper()


def read_pem_chain(path: Path) -> list[x509.Certificate]:
    if not path.is_file():
        raise CertFileMissing(f"cert file not found: {path}")
    try:
        data = path.read_bytes()
    except OSError as e:
        raise CertIOError(f"cannot read {path}: {e}") from e
    try:
        return x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise ValidationError(f"{path} is not a PEM certificate: {e}") from e


def read_pem_cert(path: Path) -> x509.Certificate:
    return read_pem_chain(path)[0]


def fingerprint_file(path: Path) -> str:
    return sha1_fingerprint(read_pem_cert(path))


def summarize(cert: x509.Certificate) -> CertSummary:
    return CertSummary(
        subject=_name_to_str(cert.subject),
        issuer=_name_to_str(cert.issuer),
        serial_number=hex(cert.serial_number),
        not_before=dt_to_utc_iso(cert.not_valid_before_utc),
        not_after=dt_to_utc_iso(cert.not_valid_after_utc),
        sha1=sha1_fingerprint(cert),
        san=_get_san(cert),
        is_ca=_is_ca(cert),
    )
