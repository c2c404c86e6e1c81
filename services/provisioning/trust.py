"""Trust anchors and certificate path validation for feed signatures."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Iterable, Sequence

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.x509.oid import ExtensionOID

_LOGGER = logging.getLogger(__name__)

_RESOURCE_PACKAGE = "resources"


class CertificatePathError(ValueError):
    """Raised when a certificate chain does not lead to a trust anchor."""


def load_certificate(data: bytes) -> x509.Certificate:
    """Parse a PEM or DER encoded certificate."""

    if b"-----BEGIN CERTIFICATE-----" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def load_pinned_root(resource_name: str) -> x509.Certificate:
    """Load the root certificate bundled with the agent."""

    resource = resources.files(__package__).joinpath(_RESOURCE_PACKAGE).joinpath(resource_name)
    return load_certificate(resource.read_bytes())


def discover_host_roots(directory: Path | None) -> list[x509.Certificate]:
    """Return every certificate found in ``directory``.

    Plain-text files are documentation and are skipped; so is anything that
    does not parse as a certificate.
    """

    if directory is None or not directory.is_dir():
        return []
    roots: list[x509.Certificate] = []
    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.suffix.lower() == ".txt":
            continue
        try:
            roots.append(load_certificate(path.read_bytes()))
        except (OSError, ValueError):
            _LOGGER.warning("Ignoring unreadable root certificate %s", path, exc_info=True)
    return roots


@dataclass(frozen=True)
class TrustAnchorStore:
    """Produce the anchor set for a verification call.

    Anchors are rebuilt on every call to :meth:`anchors` so certificates
    dropped into the host directory take effect without a restart.
    """

    pinned_root: x509.Certificate | None
    host_root_dir: Path | None = None

    @classmethod
    def from_resources(cls, resource_name: str, host_root_dir: Path | None) -> "TrustAnchorStore":
        return cls(pinned_root=load_pinned_root(resource_name), host_root_dir=host_root_dir)

    def anchors(self) -> list[x509.Certificate]:
        anchors: list[x509.Certificate] = []
        if self.pinned_root is not None:
            anchors.append(self.pinned_root)
        anchors.extend(discover_host_roots(self.host_root_dir))
        return anchors


def validate_path(chain: Sequence[x509.Certificate], anchors: Iterable[x509.Certificate]) -> None:
    """Check that ``chain`` (leaf first) is issued, link by link, from an anchor.

    Only issuer chaining and signatures are checked; validity periods are the
    caller's concern and revocation is not consulted.
    """

    if not chain:
        raise CertificatePathError("Certificate chain is empty")

    for child, issuer in zip(chain, chain[1:]):
        _require_ca(issuer)
        _check_issued_by(child, issuer)

    last = chain[-1]
    anchor_list = list(anchors)
    for anchor in anchor_list:
        if last == anchor:
            return
        if last.issuer != anchor.subject:
            continue
        try:
            _check_issued_by(last, anchor)
        except CertificatePathError:
            continue
        return
    raise CertificatePathError(
        f"No trust anchor issued {last.issuer.rfc4514_string()} "
        f"(checked {len(anchor_list)} anchors)"
    )


def _require_ca(certificate: x509.Certificate) -> None:
    try:
        constraints = certificate.extensions.get_extension_for_oid(ExtensionOID.BASIC_CONSTRAINTS).value
    except x509.ExtensionNotFound as exc:
        raise CertificatePathError(
            f"Intermediate {certificate.subject.rfc4514_string()} lacks basic constraints"
        ) from exc
    if not constraints.ca:
        raise CertificatePathError(f"Intermediate {certificate.subject.rfc4514_string()} is not a CA")


def _check_issued_by(child: x509.Certificate, issuer: x509.Certificate) -> None:
    try:
        child.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature) as exc:
        raise CertificatePathError(
            f"{child.subject.rfc4514_string()} was not issued by {issuer.subject.rfc4514_string()}"
        ) from exc


__all__ = [
    "CertificatePathError",
    "TrustAnchorStore",
    "discover_host_roots",
    "load_certificate",
    "load_pinned_root",
    "validate_path",
]
