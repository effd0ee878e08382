"""Tests for document loading."""

import json

import httpx
import pytest
import respx
from httpx import Response

from opencred_verifier import DocumentLoader, ResolutionError
from opencred_verifier.contexts import (
    CREDENTIALS_CONTEXT_URL,
    IDENTITY_CONTEXT_URL,
    SECURITY_CONTEXT_URL,
)
from opencred_verifier.document_loader import is_url, parse_document, resolve


DOC_URL = "https://example.com/docs/1"


class TestDocumentLoader:
    """Tests for loading documents by URL."""

    @respx.mock
    def test_load_json(self):
        """Test loading a JSON document."""
        respx.get(DOC_URL).mock(return_value=Response(200, json={"id": DOC_URL}))

        remote = DocumentLoader().load(DOC_URL)

        assert remote == {
            "contextUrl": None,
            "documentUrl": DOC_URL,
            "document": {"id": DOC_URL},
        }

    @respx.mock
    def test_load_string_body(self):
        """Test a JSON body served with a non-JSON content type."""
        respx.get(DOC_URL).mock(
            return_value=Response(200, text=json.dumps({"id": DOC_URL}))
        )

        assert DocumentLoader().load(DOC_URL)["document"] == {"id": DOC_URL}

    @respx.mock
    def test_accept_header(self):
        """Test that JSON-LD is requested."""
        route = respx.get(DOC_URL).mock(return_value=Response(200, json={}))

        DocumentLoader().load(DOC_URL)

        assert "application/ld+json" in route.calls.last.request.headers["Accept"]

    @respx.mock
    def test_http_error(self):
        """Test a 404 response."""
        respx.get(DOC_URL).mock(return_value=Response(404))

        with pytest.raises(ResolutionError, match="404"):
            DocumentLoader().load(DOC_URL)

    @respx.mock
    def test_network_error(self):
        """Test a connection failure."""
        respx.get(DOC_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(ResolutionError, match="Network error"):
            DocumentLoader().load(DOC_URL)

    @respx.mock
    def test_invalid_json(self):
        """Test a body that is not JSON."""
        respx.get(DOC_URL).mock(return_value=Response(200, text="<html></html>"))

        with pytest.raises(ResolutionError, match="Invalid JSON"):
            DocumentLoader().load(DOC_URL)

    def test_unsupported_scheme(self):
        """Test that only http(s) URLs are fetched."""
        with pytest.raises(ResolutionError, match="Unsupported"):
            DocumentLoader().load("ftp://example.com/doc")

    def test_bundled_contexts(self):
        """Test that known contexts are served without the network."""
        loader = DocumentLoader()

        for url in (SECURITY_CONTEXT_URL, IDENTITY_CONTEXT_URL):
            document = loader(url)["document"]
            assert "@context" in document

    def test_bundled_contexts_define_published_terms(self):
        """Test terms that credentials sign over are not dropped."""
        security = DocumentLoader()(SECURITY_CONTEXT_URL)["document"]["@context"]
        identity = DocumentLoader()(IDENTITY_CONTEXT_URL)["document"]["@context"]

        assert security["expiration"] == {"@id": "sec:expiration", "@type": "xsd:dateTime"}
        for term in ("familyName", "givenName", "title", "address", "member"):
            assert term in identity

    @respx.mock
    def test_credentials_context_fetched(self):
        """Test the credentials context is loaded from its published URL."""
        route = respx.get(CREDENTIALS_CONTEXT_URL).mock(
            return_value=Response(200, json={"@context": {"id": "@id"}})
        )

        document = DocumentLoader().load(CREDENTIALS_CONTEXT_URL)["document"]

        assert route.called
        assert document == {"@context": {"id": "@id"}}

    @respx.mock
    def test_cache(self):
        """Test that a URL is fetched once and copies are independent."""
        route = respx.get(DOC_URL).mock(return_value=Response(200, json={"id": DOC_URL}))
        loader = DocumentLoader()

        first = loader.load(DOC_URL)["document"]
        first["mutated"] = True
        second = loader.load(DOC_URL)["document"]

        assert route.call_count == 1
        assert second == {"id": DOC_URL}

    @respx.mock
    def test_cache_disabled(self):
        """Test fetching every time without a cache."""
        route = respx.get(DOC_URL).mock(return_value=Response(200, json={}))
        loader = DocumentLoader(use_cache=False)

        loader.load(DOC_URL)
        loader.load(DOC_URL)

        assert route.call_count == 2

    @respx.mock
    def test_clear_cache(self):
        """Test clearing the cache."""
        route = respx.get(DOC_URL).mock(return_value=Response(200, json={}))
        loader = DocumentLoader()

        loader.load(DOC_URL)
        loader.clear_cache()
        loader.load(DOC_URL)

        assert route.call_count == 2


class TestResolve:
    """Tests for resolving documents by value or URL."""

    def test_inline_document(self):
        """Test that inline documents are returned as given."""
        document = {"id": DOC_URL}
        assert resolve(document, DocumentLoader()) is document

    @respx.mock
    def test_url(self):
        """Test resolving a URL."""
        respx.get(DOC_URL).mock(return_value=Response(200, json={"id": DOC_URL}))

        assert resolve(DOC_URL, DocumentLoader()) == {"id": DOC_URL}

    def test_unsupported_reference(self):
        """Test a reference that is neither document nor URL."""
        with pytest.raises(ResolutionError):
            resolve(42, DocumentLoader())

    def test_parse_document_rejects_arrays(self):
        """Test that documents must be JSON objects."""
        with pytest.raises(ResolutionError, match="not a JSON object"):
            parse_document("[1, 2]")

    def test_is_url(self):
        assert is_url("https://example.com/")
        assert is_url("http://example.com/")
        assert not is_url("urn:uuid:1234")
        assert not is_url({"id": "https://example.com/"})
