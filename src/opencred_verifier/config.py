"""Verifier configuration."""

from __future__ import annotations

from dataclasses import dataclass

from opencred_verifier.contexts import CREDENTIALS_CONTEXT_URL
from opencred_verifier.document_loader import DocumentLoader
from opencred_verifier.linked_data import LinkedDataProcessor
from opencred_verifier.signature import CryptoProvider


@dataclass
class VerifierOptions:
    """Collaborators and settings for a verifier.

    Attributes:
        document_loader: Loads credentials, keys and identities by URL.
        linked_data: Frames, normalizes and compacts documents. Built on
            ``document_loader`` if not provided.
        crypto: Parses public keys and verifies signatures.
        disable_local_framing: Skip framing for documents under
            ``local_base_uri``; they are assumed to be framed already.
        local_base_uri: Base URI of trusted local documents.
        context_url: Context the verified data is compacted against.
        timeout: HTTP timeout for the default document loader.
        verify_ssl: SSL verification for the default document loader.
        cache_documents: Cache fetched documents in the default document
            loader. Cached key documents are not refetched, so a long-lived
            verifier does not see a key revoked after its first fetch.
    """

    document_loader: DocumentLoader | None = None
    linked_data: LinkedDataProcessor | None = None
    crypto: CryptoProvider | None = None
    disable_local_framing: bool = False
    local_base_uri: str | None = None
    context_url: str = CREDENTIALS_CONTEXT_URL
    timeout: float = 30.0
    verify_ssl: bool = True
    cache_documents: bool = True

    def __post_init__(self) -> None:
        if self.disable_local_framing and not self.local_base_uri:
            raise ValueError("local_base_uri must be given if disabling local framing")

        if self.document_loader is None:
            self.document_loader = DocumentLoader(
                timeout=self.timeout,
                verify_ssl=self.verify_ssl,
                use_cache=self.cache_documents,
            )
        if self.linked_data is None:
            self.linked_data = LinkedDataProcessor(self.document_loader)
        if self.crypto is None:
            self.crypto = CryptoProvider()

    def is_local(self, ref: object) -> bool:
        """Check if ``ref`` (URL or document) lives under the local base URI."""
        if not (self.disable_local_framing and self.local_base_uri):
            return False
        if isinstance(ref, str):
            return ref.startswith(self.local_base_uri)
        if isinstance(ref, dict):
            doc_id = ref.get("id")
            return isinstance(doc_id, str) and doc_id.startswith(self.local_base_uri)
        return False
