"""Shared fixtures for verifier tests."""

import base64
import copy
import json

import pytest

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from opencred_verifier import DocumentLoader, LinkedDataProcessor, VerifierOptions
from opencred_verifier.contexts import CONTEXTS, CREDENTIALS_CONTEXT_URL, IDENTITY_CONTEXT
from opencred_verifier.linked_data import (
    CompactionError,
    FramingError,
    NormalizationError,
    get_values,
)
from opencred_verifier.signature import SUITES


KEY_ID = "https://example.com/keys/1"
OWNER_ID = "https://example.com/i/alice"
CREDENTIAL_ID = "https://example.com/credentials/1"

# Served for the credentials context so tests stay offline. The identity
# context defines the same credential, key and schema.org terms.
CREDENTIALS_CONTEXT = copy.deepcopy(IDENTITY_CONTEXT)
TEST_CONTEXTS = {**CONTEXTS, CREDENTIALS_CONTEXT_URL: CREDENTIALS_CONTEXT}


def canonical_json(document: dict) -> str:
    """Deterministic stand-in for RDF normalization."""
    body = {k: v for k, v in document.items() if k != "@context"}
    if not body:
        raise NormalizationError("The data to verify is empty.")
    return json.dumps(body, sort_keys=True, separators=(",", ":"))


class StubLinkedDataProcessor(LinkedDataProcessor):
    """Frames by context, type and property presence; normalizes to sorted JSON."""

    def __init__(self, document_loader=None):
        super().__init__(document_loader)
        self.algorithms = []
        self.frames = []

    def frame(self, document, frame):
        self.frames.append(frame)
        ctx = frame["@context"]
        if document.get("@context", ctx) != ctx:
            raise FramingError("No matching object found for frame.")
        for key, value in frame.items():
            if key == "@context":
                continue
            if key == "type":
                if value not in get_values(document, "type"):
                    raise FramingError("No matching object found for frame.")
            elif key not in document and "@default" not in value:
                raise FramingError("No matching object found for frame.")
        output = copy.deepcopy(document)
        output["@context"] = ctx
        return output

    def normalize(self, document, algorithm=None):
        self.algorithms.append(algorithm)
        return canonical_json(document)

    def compact(self, document, context_url=CREDENTIALS_CONTEXT_URL):
        compacted = {k: v for k, v in document.items() if k != "@context"}
        return {"@context": context_url, **compacted}


class FailingCompactProcessor(StubLinkedDataProcessor):
    def compact(self, document, context_url=CREDENTIALS_CONTEXT_URL):
        raise CompactionError("Compaction failed: unreachable context")


def sign_credential(
    claims: dict,
    private_key,
    signature_type: str = "GraphSignature2012",
    normalize=canonical_json,
    **signature_fields,
) -> dict:
    """Sign ``claims`` with the test RSA key and attach the signature block."""
    signature = {
        "type": signature_type,
        "creator": KEY_ID,
        "created": "2015-09-01T12:00:00Z",
        **signature_fields,
    }
    suite = SUITES.get(signature_type)
    signed_data = suite.build_signed_data(signature, normalize(claims)) if suite else ""
    signature_bytes = private_key.sign(
        signed_data.encode("utf-8"),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )
    signature["signatureValue"] = base64.b64encode(signature_bytes).decode()

    signed = copy.deepcopy(claims)
    signed["signature"] = signature
    return signed


def tamper(signature_value: str) -> str:
    """Flip the first character of a base64 signature value."""
    first = "B" if signature_value[0] == "A" else "A"
    return first + signature_value[1:]


@pytest.fixture(scope="session")
def rsa_private_key():
    """Generate a test RSA key pair."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key):
    """Get the public key as PEM."""
    return rsa_private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


@pytest.fixture
def public_key_document(public_key_pem):
    """Create a test public key document."""
    return {
        "@context": CREDENTIALS_CONTEXT_URL,
        "id": KEY_ID,
        "type": "CryptographicKey",
        "owner": OWNER_ID,
        "publicKeyPem": public_key_pem,
    }


@pytest.fixture
def identity_document(public_key_document):
    """Create a test identity that owns the public key."""
    embedded_key = {k: v for k, v in public_key_document.items() if k != "@context"}
    return {
        "@context": CREDENTIALS_CONTEXT_URL,
        "id": OWNER_ID,
        "type": "Identity",
        "name": "Alice",
        "publicKey": [embedded_key],
    }


@pytest.fixture
def claims():
    """Create an unsigned credential."""
    return {
        "@context": CREDENTIALS_CONTEXT_URL,
        "id": CREDENTIAL_ID,
        "type": ["Credential"],
        "issuer": OWNER_ID,
        "issued": "2015-09-01T00:00:00Z",
        "claim": {
            "id": "https://example.com/i/bob",
            "name": "Bob",
        },
    }


@pytest.fixture
def document_loader():
    return DocumentLoader(timeout=5.0, contexts=TEST_CONTEXTS)


@pytest.fixture
def stub_processor(document_loader):
    return StubLinkedDataProcessor(document_loader)


@pytest.fixture
def options(document_loader, stub_processor):
    return VerifierOptions(document_loader=document_loader, linked_data=stub_processor)
