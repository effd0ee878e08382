"""
Open Credential Verifier - linked-data credential verification library.

Supports:
- GraphSignature2012 and LinkedDataSignature2015 signatures
- Public key and key-owner resolution over HTTP(S)
- Key revocation and credential expiration checks
- RSA and EC public keys (SHA-256)
"""

import logging

from opencred_verifier.config import VerifierOptions
from opencred_verifier.document_loader import DocumentLoader, ResolutionError
from opencred_verifier.linked_data import (
    CompactionError,
    FramingError,
    LinkedDataProcessor,
    NormalizationError,
)
from opencred_verifier.params import ParameterBundle
from opencred_verifier.signature import CryptoProvider, SignatureVerificationError
from opencred_verifier.verifier import (
    CredentialVerifier,
    VerificationResult,
    verify_credential,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "CredentialVerifier",
    "VerificationResult",
    "verify_credential",
    "VerifierOptions",
    "ParameterBundle",
    "DocumentLoader",
    "LinkedDataProcessor",
    "CryptoProvider",
    "ResolutionError",
    "FramingError",
    "NormalizationError",
    "SignatureVerificationError",
    "CompactionError",
]
