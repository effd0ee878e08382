"""
Verification parameters.

Gathers everything a verification run needs by following the links from
a credential to its signer's public key and from the key to the identity
that owns it, then canonicalizes the claims.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from opencred_verifier.config import VerifierOptions
from opencred_verifier.document_loader import ResolutionError, resolve
from opencred_verifier.linked_data import (
    FRAME_PUBLIC_KEY,
    FRAME_SIGNED_OBJECT,
    IDENTITY_FRAMES,
    FramingError,
    NormalizationError,
    get_values,
)
from opencred_verifier.signature import get_suite

logger = logging.getLogger(__name__)

ErrorMap = dict[str, Exception]


@dataclass
class ParameterBundle:
    """Parameters gathered during a single verification run."""

    data: dict[str, Any] | None = None
    signature: dict[str, Any] | None = None
    public_key: dict[str, Any] | None = None
    identity: dict[str, Any] | None = None
    normalized: str | None = None
    signed_data: str | None = None
    has_expiration: bool = False
    expiration: datetime | None = None
    verified_data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render the bundle with the JSON-LD style key names."""
        return {
            "data": self.data,
            "signature": self.signature,
            "publicKey": self.public_key,
            "identity": self.identity,
            "normalized": self.normalized,
            "signedData": self.signed_data,
            "hasExpiration": self.has_expiration,
            "expiration": self.expiration.isoformat() if self.expiration else None,
            "verifiedData": self.verified_data,
        }


class ParameterAssembler:
    """Builds the parameter bundle for a credential."""

    def __init__(self, options: VerifierOptions) -> None:
        self.options = options

    def assemble(self, credential: dict[str, Any] | str) -> tuple[ParameterBundle, ErrorMap]:
        """Gather the verification parameters for ``credential``.

        Steps, with the error key each failure is recorded under:
        1. Frame the credential to find its signature (``data``, fatal).
        2. Detach the signature from the claims.
        3. Fetch and frame the signer's public key (``publicKey``).
        4. Fetch and frame the key owner's identity (``publicKeyOwner``).
        5. Normalize the claims (``normalization``, fatal).

        Args:
            credential: The credential document or its URL.

        Returns:
            The (possibly incomplete) bundle and any errors. Never raises
            for resolution, framing or normalization failures.
        """
        params = ParameterBundle()
        errors: ErrorMap = {}

        try:
            data = self.extract(credential, FRAME_SIGNED_OBJECT)
        except (ResolutionError, FramingError) as e:
            logger.warning("No signed object found in credential: %s", e)
            errors["data"] = e
            return params, errors

        signature = data.pop("signature", None)
        if isinstance(signature, list):
            signature = signature[0] if signature else None
        params.data = data
        if not isinstance(signature, dict):
            errors["data"] = FramingError("Signature is not an embedded object.")
            logger.warning("Credential signature is not an embedded object")
            return params, errors
        params.signature = signature

        try:
            params.public_key = self._get_public_key(signature)
        except (ResolutionError, FramingError) as e:
            logger.warning("Could not obtain public key: %s", e)
            errors["publicKey"] = e

        if params.public_key is not None:
            try:
                params.identity = self._get_identity(params.public_key)
            except (ResolutionError, FramingError) as e:
                logger.warning("Could not obtain public key owner: %s", e)
                errors["publicKeyOwner"] = e

        suite = get_suite(signature.get("type"))
        algorithm = suite.normalization_algorithm if suite else None
        try:
            params.normalized = self.options.linked_data.normalize(data, algorithm)
        except NormalizationError as e:
            logger.warning("Could not normalize credential data: %s", e)
            errors["normalization"] = e

        return params, errors

    def extract(self, ref: dict[str, Any] | str, frame: dict[str, Any]) -> dict[str, Any]:
        """Resolve ``ref`` and frame it with ``frame``.

        Documents under the configured local base URI are returned as-is
        when local framing is disabled.

        Raises:
            ResolutionError: If the document can't be loaded.
            FramingError: If nothing in the document matches ``frame``.
        """
        document = resolve(ref, self.options.document_loader)
        if self.options.is_local(ref) or self.options.is_local(document):
            logger.debug("Skipping framing for local document %s", document.get("id"))
            return copy.deepcopy(document)
        return self.options.linked_data.frame(document, frame)

    def _get_public_key(self, signature: dict[str, Any]) -> dict[str, Any]:
        creator = _first_id(signature, "creator")
        if creator is None:
            raise ResolutionError("Signature has no creator")
        logger.debug("Resolving public key %s", creator)
        return self.extract(creator, FRAME_PUBLIC_KEY)

    def _get_identity(self, public_key: dict[str, Any]) -> dict[str, Any]:
        owner = _first_id(public_key, "owner")
        if owner is None:
            raise ResolutionError("Public key has no owner")
        logger.debug("Resolving public key owner %s", owner)

        document = resolve(owner, self.options.document_loader)
        if self.options.is_local(owner) or self.options.is_local(document):
            return copy.deepcopy(document)

        failures: list[FramingError] = []
        for frame in IDENTITY_FRAMES:
            try:
                return self.options.linked_data.frame(document, frame)
            except FramingError as e:
                failures.append(e)
        raise FramingError(
            "No identity found for public key owner: "
            + "; ".join(str(f) for f in failures)
        )


def _first_id(subject: dict[str, Any], prop: str) -> str | None:
    """Get the first value of ``prop`` as an id string."""
    for value in get_values(subject, prop):
        if isinstance(value, dict):
            value = value.get("id") or value.get("@id")
        if isinstance(value, str) and value:
            return value
    return None
