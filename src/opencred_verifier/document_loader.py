"""
Document loader for credentials, public keys and identities.

Fetches JSON-LD documents over HTTP(S) and serves the bundled security
and identity contexts locally. An instance doubles as the
``documentLoader`` handed to the JSON-LD processor.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from typing import Any
from urllib.parse import urlparse

import httpx

from opencred_verifier.contexts import CONTEXTS

logger = logging.getLogger(__name__)

RemoteDocument = dict[str, Any]


class ResolutionError(Exception):
    """Raised when a document cannot be fetched or parsed."""


def is_url(ref: Any) -> bool:
    """Check if ``ref`` is an absolute http(s) URL string."""
    if not isinstance(ref, str):
        return False
    return urlparse(ref).scheme in ("http", "https")


class DocumentLoader:
    """Loads JSON-LD documents by URL."""

    def __init__(
        self,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        contexts: dict[str, dict[str, Any]] | None = None,
        use_cache: bool = True,
    ) -> None:
        """Initialize the document loader.

        Args:
            timeout: HTTP request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            contexts: Documents served without a network fetch, keyed by URL.
                Defaults to the bundled JSON-LD contexts.
            use_cache: Whether fetched documents are cached by URL. Entries
                live until ``clear_cache`` is called, so a key revoked after
                its first fetch still reads as unrevoked. Long-lived loaders
                should disable the cache or clear it periodically.
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.use_cache = use_cache
        self.contexts = dict(CONTEXTS if contexts is None else contexts)
        self._cache: dict[str, RemoteDocument] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def __call__(self, url: str, options: dict[str, Any] | None = None) -> RemoteDocument:
        return self.load(url)

    def load(self, url: str) -> RemoteDocument:
        """Load the document at ``url``.

        Args:
            url: Absolute http(s) URL of the document.

        Returns:
            A remote document: ``{"contextUrl", "documentUrl", "document"}``.
            The document is a fresh copy the caller may mutate.

        Raises:
            ResolutionError: If fetching or parsing fails.
        """
        if url in self.contexts:
            return _remote_document(url, copy.deepcopy(self.contexts[url]))

        if not self.use_cache:
            return self._fetch(url)

        # One fetch per URL; concurrent callers wait on the same lock.
        with self._lock_for(url):
            if url not in self._cache:
                self._cache[url] = self._fetch(url)
            else:
                logger.debug("Document cache hit for %s", url)
            return copy.deepcopy(self._cache[url])

    def _lock_for(self, url: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(url, threading.Lock())

    def _fetch(self, url: str) -> RemoteDocument:
        if not is_url(url):
            raise ResolutionError(f"Unsupported document URL: {url!r}")

        logger.debug("Fetching document %s", url)
        try:
            with httpx.Client(timeout=self.timeout, verify=self.verify_ssl) as client:
                response = client.get(
                    url,
                    headers={"Accept": "application/ld+json, application/json"},
                )
                response.raise_for_status()
                body = response.text

        except httpx.HTTPStatusError as e:
            raise ResolutionError(
                f"HTTP error loading {url}: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise ResolutionError(f"Network error loading {url}: {e}") from e

        return _remote_document(url, parse_document(body, url))

    def clear_cache(self) -> None:
        """Clear the document cache."""
        with self._locks_guard:
            self._cache.clear()
            self._locks.clear()


def parse_document(body: Any, url: str | None = None) -> dict[str, Any]:
    """Parse a document body that may still be a JSON string.

    Raises:
        ResolutionError: If the body is not a JSON object.
    """
    where = f" {url}" if url else ""
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except ValueError as e:
            raise ResolutionError(f"Invalid JSON in document{where}") from e
    if not isinstance(body, dict):
        raise ResolutionError(f"Document{where} is not a JSON object")
    return body


def resolve(ref: Any, loader: DocumentLoader) -> dict[str, Any]:
    """Resolve a document given by value or by URL.

    Args:
        ref: An inline document (mapping) or the URL of one.
        loader: The loader used for URL references.

    Returns:
        The parsed document.

    Raises:
        ResolutionError: If ``ref`` is neither, or loading fails.
    """
    if isinstance(ref, dict):
        return ref
    if isinstance(ref, str):
        return parse_document(loader.load(ref)["document"], ref)
    raise ResolutionError(f"Cannot resolve document reference of type {type(ref).__name__}")


def _remote_document(url: str, document: Any) -> RemoteDocument:
    return {"contextUrl": None, "documentUrl": url, "document": document}
