"""
JSON-LD framing, normalization and compaction.

Thin wrapper over pyld that turns its failures into the verifier's own
error types and applies the conventions the verifier relies on
(null-base framing, first-match extraction, N-Quads output).
"""

from __future__ import annotations

import logging
from typing import Any

from pyld import jsonld

from opencred_verifier.contexts import CREDENTIALS_CONTEXT_URL, OPENBADGES_CONTEXT_URL
from opencred_verifier.document_loader import DocumentLoader

logger = logging.getLogger(__name__)

NQUADS_FORMAT = "application/n-quads"

FRAME_SIGNED_OBJECT: dict[str, Any] = {
    "@context": CREDENTIALS_CONTEXT_URL,
    "signature": {"@embed": "@always"},
}

FRAME_PUBLIC_KEY: dict[str, Any] = {
    "@context": CREDENTIALS_CONTEXT_URL,
    "type": "CryptographicKey",
    "owner": {"@embed": "@never"},
    "publicKeyPem": {},
}

# https://w3id.org/identity#Identity
FRAME_IDENTITY: dict[str, Any] = {
    "@context": CREDENTIALS_CONTEXT_URL,
    "type": "Identity",
    "publicKey": {"@embed": "@never", "@default": []},
}

# https://w3id.org/openbadges#Identity
FRAME_OB_IDENTITY: dict[str, Any] = {
    "@context": OPENBADGES_CONTEXT_URL,
    "type": "Identity",
    "publicKey": {"@embed": "@never", "@default": []},
}

IDENTITY_FRAMES: tuple[dict[str, Any], ...] = (FRAME_IDENTITY, FRAME_OB_IDENTITY)


class FramingError(Exception):
    """Raised when no object in a document matches a frame."""


class NormalizationError(Exception):
    """Raised when a document cannot be canonicalized."""


class CompactionError(Exception):
    """Raised when a document cannot be compacted."""


def get_values(subject: dict[str, Any], prop: str) -> list[Any]:
    """Get all values of ``prop`` on ``subject`` as a list."""
    return jsonld.JsonLdProcessor.get_values(subject, prop)


class LinkedDataProcessor:
    """Frames, normalizes and compacts JSON-LD documents."""

    def __init__(self, document_loader: DocumentLoader | None = None) -> None:
        self.document_loader = document_loader or DocumentLoader()

    def frame(self, document: dict[str, Any], frame: dict[str, Any]) -> dict[str, Any]:
        """Frame ``document`` and return the first matching object.

        The frame is applied with a null ``@base`` so the result does not
        depend on where the document was loaded from. The match comes back
        with ``@context`` set to the frame's context.

        Raises:
            FramingError: If framing fails or nothing matches.
        """
        ctx = frame["@context"]
        null_base_frame = dict(frame)
        null_base_frame["@context"] = [ctx, {"@base": None}]

        try:
            framed = jsonld.frame(
                document,
                null_base_frame,
                {"documentLoader": self.document_loader, "omitGraph": False},
            )
        except Exception as e:
            raise FramingError(f"Framing failed: {e}") from e

        matches = _framed_nodes(framed)
        if not matches:
            raise FramingError("No matching object found for frame.")

        output = matches[0]
        output["@context"] = ctx
        return output

    def normalize(self, document: dict[str, Any], algorithm: str | None = None) -> str:
        """Canonicalize ``document`` to N-Quads.

        Args:
            document: The JSON-LD document.
            algorithm: ``URGNA2012``, ``URDNA2015`` or None for the
                processor default.

        Raises:
            NormalizationError: If normalization fails or yields nothing.
        """
        options: dict[str, Any] = {
            "format": NQUADS_FORMAT,
            "documentLoader": self.document_loader,
        }
        if algorithm:
            options["algorithm"] = algorithm

        try:
            normalized = jsonld.normalize(document, options)
        except Exception as e:
            raise NormalizationError(f"Normalization failed: {e}") from e

        if not normalized:
            # Usually a missing @context leaving every term undefined.
            raise NormalizationError("The data to verify is empty.")
        return normalized

    def compact(self, document: dict[str, Any], context_url: str = CREDENTIALS_CONTEXT_URL) -> dict[str, Any]:
        """Compact ``document`` against ``context_url``.

        Raises:
            CompactionError: If compaction fails.
        """
        try:
            return jsonld.compact(
                document, context_url, {"documentLoader": self.document_loader}
            )
        except Exception as e:
            raise CompactionError(f"Compaction failed: {e}") from e


def _framed_nodes(framed: dict[str, Any]) -> list[dict[str, Any]]:
    if "@graph" in framed:
        graph = framed["@graph"]
        return list(graph) if isinstance(graph, list) else [graph]
    node = {k: v for k, v in framed.items() if k != "@context"}
    return [node] if node else []
