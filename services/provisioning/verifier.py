"""Signature verification for feed documents."""

from __future__ import annotations

import base64
import binascii
import datetime
import hashlib
import logging
from typing import Any, Callable, Mapping

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from services.provisioning.canonical import CanonicalJSONError, TeeSink, write_canonical
from services.provisioning.models import VerificationResult
from services.provisioning.trust import CertificatePathError, TrustAnchorStore, validate_path

_LOGGER = logging.getLogger(__name__)


class SignatureAccumulator:
    """Incrementally hash signed bytes, then verify against a public key."""

    def __init__(self, public_key: Any, algorithm: hashes.HashAlgorithm | None = None) -> None:
        if not isinstance(public_key, (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)):
            raise UnsupportedAlgorithm(f"Unsupported signing key type: {type(public_key).__name__}")
        self._public_key = public_key
        self._algorithm = algorithm or hashes.SHA1()
        self._hash = hashes.Hash(self._algorithm)

    def update(self, data: bytes) -> None:
        self._hash.update(data)

    def verify(self, signature: bytes) -> bool:
        digest = self._hash.finalize()
        try:
            if isinstance(self._public_key, rsa.RSAPublicKey):
                self._public_key.verify(signature, digest, padding.PKCS1v15(), Prehashed(self._algorithm))
            else:
                self._public_key.verify(signature, digest, ec.ECDSA(Prehashed(self._algorithm)))
        except InvalidSignature:
            return False
        return True


class SignatureVerifier:
    """Check a feed document against the trusted certificate chain.

    The signature covers the canonical serialization of the document minus
    its ``signature`` block.  Only ``correct_digest`` and ``correct_signature``
    are trusted.  Older feeds also publish ``digest`` and ``signature`` computed
    over a truncated byte stream; accepting those would let an attacker append
    content past the truncation point, so they are never consulted.
    """

    def __init__(
        self,
        trust_store: TrustAnchorStore,
        *,
        source_name: str = "update site",
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self._trust_store = trust_store
        self._source_name = source_name
        self._clock = clock or (lambda: datetime.datetime.now(datetime.timezone.utc))

    def verify(self, document: Mapping[str, Any]) -> VerificationResult:
        try:
            return self._verify(document)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            _LOGGER.debug("Signature verification raised for %s", self._source_name, exc_info=True)
            return VerificationResult.error(
                f"Signature verification failed in {self._source_name}: {exc}"
            )

    def _verify(self, document: Mapping[str, Any]) -> VerificationResult:
        signature = document.get("signature") if isinstance(document, Mapping) else None
        if not isinstance(signature, Mapping):
            return VerificationResult.error(f"No signature block found in {self._source_name}")
        payload = {key: value for key, value in document.items() if key != "signature"}

        warning: VerificationResult | None = None
        certificates: list[x509.Certificate] = []
        encoded_certificates = signature.get("certificates")
        if not isinstance(encoded_certificates, list) or not encoded_certificates:
            return VerificationResult.error(f"No certificates in the signature block of {self._source_name}")
        for encoded in encoded_certificates:
            certificate = x509.load_der_x509_certificate(_b64decode(str(encoded)))
            validity_warning = self._check_validity(certificate)
            if validity_warning is not None:
                warning = validity_warning
            certificates.append(certificate)

        try:
            validate_path(certificates, self._trust_store.anchors())
        except CertificatePathError as exc:
            return VerificationResult.error(
                f"Certificate path validation failed in {self._source_name}: {exc}"
            )

        digest = hashlib.sha1()
        signature_check = SignatureAccumulator(certificates[0].public_key())
        try:
            write_canonical(payload, TeeSink(digest.update, signature_check.update))
        except CanonicalJSONError as exc:
            return VerificationResult.error(f"Cannot canonicalize {self._source_name}: {exc}")

        computed_digest = base64.b64encode(digest.digest()).decode("ascii")
        provided_digest = signature.get("correct_digest")
        if not isinstance(provided_digest, str):
            return VerificationResult.error(
                f"Stale metadata: no correct_digest parameter in {self._source_name}"
            )
        if computed_digest.lower() != provided_digest.lower():
            return VerificationResult.error(
                f"Digest mismatch: {computed_digest} vs {provided_digest} in {self._source_name}"
            )

        provided_signature = signature.get("correct_signature")
        if not isinstance(provided_signature, str) or not signature_check.verify(_b64decode(provided_signature)):
            return VerificationResult.error(
                f"Signature mismatch: the signature in {self._source_name} does not match its certificate"
            )

        if warning is not None:
            return warning
        return VerificationResult.ok()

    def _check_validity(self, certificate: x509.Certificate) -> VerificationResult | None:
        now = self._clock()
        subject = certificate.subject.rfc4514_string()
        if now > certificate.not_valid_after_utc:
            return VerificationResult.warning(f"Certificate {subject} has expired in {self._source_name}")
        if now < certificate.not_valid_before_utc:
            return VerificationResult.warning(f"Certificate {subject} is not yet valid in {self._source_name}")
        return None


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode("".join(value.split()).encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"Invalid base64 data: {exc}") from exc


__all__ = ["SignatureAccumulator", "SignatureVerifier"]
