"""Signing backends."""

from chainai.signing.base import Signature, SignerBackend
from chainai.signing.local import LocalSigner

__all__ = ["LocalSigner", "Signature", "SignerBackend"]
