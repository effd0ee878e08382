"""
Signature suites and signature verification.

Supported:
- GraphSignature2012 (URGNA2012 normalization)
- LinkedDataSignature2015 (URDNA2015 normalization)
- RSA (PKCS#1 v1.5) and EC (ECDSA) public keys, SHA-256 digest
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed


class SignatureVerificationError(Exception):
    """Raised when a signature cannot be verified."""


class SignatureSuite:
    """A signature type and the rules for rebuilding its signed data."""

    name: str = ""
    normalization_algorithm: str | None = None

    def build_signed_data(self, signature: dict[str, Any], normalized: str) -> str:
        """Build the exact string that was signed.

        Args:
            signature: The signature block.
            normalized: The canonicalized claims payload.
        """
        raise NotImplementedError


class GraphSignature2012(SignatureSuite):
    """nonce + created + normalized, no separators."""

    name = "GraphSignature2012"
    normalization_algorithm = "URGNA2012"

    def build_signed_data(self, signature: dict[str, Any], normalized: str) -> str:
        signed_data = ""
        if signature.get("nonce") is not None:
            signed_data += str(signature["nonce"])
        signed_data += str(signature.get("created", ""))
        signed_data += normalized
        return signed_data


class LinkedDataSignature2015(SignatureSuite):
    """``<header-uri>: <value>\\n`` for each present header, then normalized."""

    name = "LinkedDataSignature2015"
    normalization_algorithm = "URDNA2015"

    # Lexicographical order; part of what was signed.
    HEADERS = (
        ("http://purl.org/dc/elements/1.1/created", "created"),
        ("https://w3id.org/security#domain", "domain"),
        ("https://w3id.org/security#nonce", "nonce"),
    )

    def build_signed_data(self, signature: dict[str, Any], normalized: str) -> str:
        signed_data = ""
        for uri, key in self.HEADERS:
            value = signature.get(key)
            if value is not None:
                signed_data += f"{uri}: {value}\n"
        signed_data += normalized
        return signed_data


SUITES: dict[str, SignatureSuite] = {
    suite.name: suite for suite in (GraphSignature2012(), LinkedDataSignature2015())
}


def get_suite(signature_type: Any) -> SignatureSuite | None:
    """Look up the suite for a signature ``type`` value (string or list)."""
    types = signature_type if isinstance(signature_type, list) else [signature_type]
    for t in types:
        if isinstance(t, str) and t in SUITES:
            return SUITES[t]
    return None


def build_signed_data(signature: dict[str, Any], normalized: str) -> str | None:
    """Build the signed data for ``signature``, or None for an unknown type."""
    suite = get_suite(signature.get("type"))
    if suite is None:
        return None
    return suite.build_signed_data(signature, normalized)


class CryptoProvider:
    """Verifies signatures over SHA-256 digests with PEM public keys."""

    def __init__(self) -> None:
        self.hash_algorithm = hashes.SHA256()

    def load_public_key(self, pem: str) -> PublicKeyTypes:
        """Parse a PEM encoded public key.

        Raises:
            SignatureVerificationError: If the PEM is missing or invalid.
        """
        if not isinstance(pem, str) or not pem:
            raise SignatureVerificationError("Missing publicKeyPem")
        try:
            return serialization.load_pem_public_key(pem.encode("utf-8"))
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SignatureVerificationError(f"Invalid public key PEM: {e}") from e

    def digest(self, data: bytes) -> bytes:
        """Hash ``data`` with the provider's digest algorithm."""
        h = hashes.Hash(self.hash_algorithm)
        h.update(data)
        return h.finalize()

    def decode_signature(self, signature_value: str) -> bytes:
        """Decode a base64 signature value.

        Raises:
            SignatureVerificationError: If the value is missing or not base64.
        """
        if not isinstance(signature_value, str) or not signature_value:
            raise SignatureVerificationError("Missing signatureValue")
        try:
            return base64.b64decode(signature_value)
        except (binascii.Error, ValueError) as e:
            raise SignatureVerificationError(f"Invalid signatureValue: {e}") from e

    def verify(self, public_key: PublicKeyTypes, digest: bytes, signature: bytes) -> bool:
        """Verify ``signature`` over a precomputed ``digest``.

        Returns:
            True if the signature matches, False otherwise.

        Raises:
            SignatureVerificationError: If the key type is unsupported.
        """
        prehashed = Prehashed(self.hash_algorithm)
        try:
            if isinstance(public_key, rsa.RSAPublicKey):
                public_key.verify(signature, digest, padding.PKCS1v15(), prehashed)
            elif isinstance(public_key, ec.EllipticCurvePublicKey):
                public_key.verify(signature, digest, ec.ECDSA(prehashed))
            else:
                raise SignatureVerificationError(
                    f"Unsupported public key type: {type(public_key).__name__}"
                )
        except InvalidSignature:
            return False
        return True

    def verify_signature(
        self,
        public_key_pem: str,
        signed_data: str,
        signature_value: str,
    ) -> bool:
        """Verify a base64 signature over ``signed_data`` with a PEM key.

        Args:
            public_key_pem: The signer's PEM encoded public key.
            signed_data: The reconstructed signed string (UTF-8 encoded before hashing).
            signature_value: The base64 ``signatureValue``.

        Returns:
            True if the signature matches, False otherwise.

        Raises:
            SignatureVerificationError: If the key or signature can't be used.
        """
        public_key = self.load_public_key(public_key_pem)
        signature = self.decode_signature(signature_value)
        return self.verify(public_key, self.digest(signed_data.encode("utf-8")), signature)
