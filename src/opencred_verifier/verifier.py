"""
Open Credential Verifier.

Verifies signed linked-data credentials.

Checks, in order:
- signed: the credential carries a signature block
- publicKeyAccessible: the signer's public key could be fetched
- publicKeyOwner: the key's owner lists the key among its public keys
- knownSignatureType: GraphSignature2012 or LinkedDataSignature2015
- publicKeyNotRevoked: the key has no ``revoked`` marker
- signatureVerified: the signature matches the canonicalized claims
- notExpired: the claims have no ``expires`` or it is in the future
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import isodate

from opencred_verifier.config import VerifierOptions
from opencred_verifier.linked_data import CompactionError, get_values
from opencred_verifier.params import ErrorMap, ParameterAssembler, ParameterBundle
from opencred_verifier.signature import SignatureSuite, SignatureVerificationError, get_suite

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """Complete verification result.

    Attributes:
        params: Parameters gathered during verification.
        checks: Named check results, in the order they ran. A check whose
            precondition was never reached is absent.
        errors: Errors captured per stage.
    """

    params: ParameterBundle
    checks: dict[str, bool] = field(default_factory=dict)
    errors: ErrorMap = field(default_factory=dict)

    @property
    def verified(self) -> bool:
        """True if the credential is signed and no check that ran failed."""
        return bool(self.checks.get("signed")) and all(self.checks.values())

    @property
    def tests(self) -> dict[str, bool]:
        """The checks with the overall ``verified`` flag appended."""
        return {**self.checks, "verified": self.verified}

    def to_dict(self) -> dict[str, Any]:
        """Render the result as JSON-serializable data."""
        return {
            "verified": self.verified,
            "tests": self.tests,
            "errors": {key: str(error) for key, error in self.errors.items()},
            "params": self.params.to_dict(),
        }


class CredentialVerifier:
    """Linked-data credential verifier."""

    def __init__(self, options: VerifierOptions | None = None) -> None:
        """Initialize the verifier.

        Args:
            options: Collaborators and settings. Defaults are created if not provided.
        """
        self.options = options or VerifierOptions()
        self.assembler = ParameterAssembler(self.options)

    def verify(self, credential: dict[str, Any] | str) -> VerificationResult:
        """Verify a credential.

        Args:
            credential: The credential document or its URL.

        Returns:
            VerificationResult with the checks that ran and any errors.
            Failures are reported in the result, never raised.
        """
        try:
            params, errors = self.assembler.assemble(credential)
            result = VerificationResult(params=params, errors=errors)
            self._run_checks(result)
            self._finalize(result)
        except Exception as e:
            logger.exception("Unexpected error verifying credential")
            result = VerificationResult(
                params=ParameterBundle(),
                checks={"signed": False},
                errors={"verification": e},
            )
        logger.debug("Verification checks: %s", result.tests)
        return result

    def _run_checks(self, result: VerificationResult) -> None:
        params = result.params
        checks = result.checks

        checks["signed"] = params.signature is not None
        if not checks["signed"]:
            return

        checks["publicKeyAccessible"] = params.public_key is not None
        checks["publicKeyOwner"] = _owns_key(params.identity, params.public_key)

        suite = get_suite(params.signature.get("type"))
        checks["knownSignatureType"] = suite is not None

        if params.public_key is not None:
            checks["publicKeyNotRevoked"] = "revoked" not in params.public_key

        if suite is not None:
            checks["signatureVerified"] = self._verify_signature(result, suite)

        checks["notExpired"] = self._check_expiration(result)

    def _verify_signature(self, result: VerificationResult, suite: SignatureSuite) -> bool:
        params = result.params
        if params.public_key is None or params.normalized is None:
            return False

        params.signed_data = suite.build_signed_data(params.signature, params.normalized)
        pem = next(iter(get_values(params.public_key, "publicKeyPem")), None)
        try:
            if not self.options.crypto.verify_signature(
                pem, params.signed_data, params.signature.get("signatureValue")
            ):
                raise SignatureVerificationError("Signature value incorrect.")
        except SignatureVerificationError as e:
            logger.warning("Signature verification failed: %s", e)
            result.errors["signature"] = e
            return False
        return True

    def _check_expiration(self, result: VerificationResult) -> bool:
        params = result.params
        if params.data is None or "expires" not in params.data:
            return True

        params.has_expiration = True
        try:
            params.expiration = parse_datetime(params.data["expires"])
        except ValueError as e:
            logger.warning("Invalid expiration date: %s", e)
            result.errors["expiration"] = e
            return False
        return params.expiration > datetime.now(timezone.utc)

    def _finalize(self, result: VerificationResult) -> None:
        params = result.params
        if not result.checks.get("signed") or params.data is None:
            return

        try:
            params.verified_data = self.options.linked_data.compact(
                params.data, self.options.context_url
            )
        except CompactionError as e:
            logger.warning("Could not compact verified data: %s", e)
            result.errors["compact"] = e


def _owns_key(identity: dict[str, Any] | None, public_key: dict[str, Any] | None) -> bool:
    """Check if ``identity`` lists ``public_key`` among its public keys."""
    if identity is None or public_key is None:
        return False
    key_id = public_key.get("id")
    if key_id is None:
        return False
    for key in get_values(identity, "publicKey"):
        if isinstance(key, str) and key == key_id:
            return True
        if isinstance(key, dict) and key.get("id") == key_id:
            return True
    return False


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO 8601 date or date-time; naive values are taken as UTC.

    Numbers are read as milliseconds since the Unix epoch.

    Raises:
        ValueError: If the value is not a valid date.
    """
    if isinstance(value, dict):
        value = value.get("@value")
    if isinstance(value, list) and value:
        value = value[0]
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    if not isinstance(value, str):
        raise ValueError(
            f"Expected an ISO 8601 date string or epoch milliseconds, got {value!r}"
        )

    if "T" in value:
        parsed = isodate.parse_datetime(value)
    else:
        date = isodate.parse_date(value)
        parsed = datetime(date.year, date.month, date.day)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def verify_credential(
    credential: dict[str, Any] | str,
    options: VerifierOptions | None = None,
) -> VerificationResult:
    """Convenience function to verify a credential.

    Args:
        credential: The credential document or its URL.
        options: Verifier collaborators and settings.

    Returns:
        VerificationResult with details of all checks.
    """
    verifier = CredentialVerifier(options)
    return verifier.verify(credential)
