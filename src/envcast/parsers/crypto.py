# src/envcast/parsers/crypto.py
"""Parsers for PEM-encoded private keys.

Signing keys are usually mounted as secrets and read from environment
variables. Two envelope formats are accepted for each key family:

- RSA: ``RSA PRIVATE KEY`` (PKCS#1) or ``PRIVATE KEY`` (PKCS#8)
- EC:  ``EC PRIVATE KEY`` (SEC 1) or ``PRIVATE KEY`` (PKCS#8)

PKCS#8 is family-agnostic, so the decoded key is checked against the
declared field type; an EC key in a PKCS#8 envelope is rejected for an RSA
field instead of being returned as the wrong type.
Encrypted keys are not supported.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Final

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from envcast.errors import ParseError

if TYPE_CHECKING:
    from envcast.registry import ParserRegistry

_PEM_BLOCK: Final[re.Pattern[str]] = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9 ]+)-----.*?-----END (?P=label)-----",
    re.DOTALL,
)
_PKCS8_LABEL: Final[str] = "PRIVATE KEY"


def _decode_pem(raw: str, family: str) -> tuple[str, bytes]:
    match = _PEM_BLOCK.search(raw)
    if match is None:
        raise ParseError(f"invalid PEM format for {family} private key")
    return match.group("label"), match.group(0).encode("ascii", errors="replace")


def _load_private_key(raw: str, *, family: str, native_label: str, key_type: type[Any]) -> Any:
    label, block = _decode_pem(raw, family)
    if label not in (native_label, _PKCS8_LABEL):
        raise ParseError(f"unsupported PEM block type for {family} private key: {label}")

    envelope = "PKCS#8" if label == _PKCS8_LABEL else family
    try:
        key = load_pem_private_key(block, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ParseError(f"failed to parse {envelope} private key: {e}") from e

    if not isinstance(key, key_type):
        raise ParseError(f"{envelope} key is not an {family} private key")
    return key


def parse_rsa_private_key(raw: str) -> rsa.RSAPrivateKey:
    key: rsa.RSAPrivateKey = _load_private_key(
        raw,
        family="RSA",
        native_label="RSA PRIVATE KEY",
        key_type=rsa.RSAPrivateKey,
    )
    return key


def parse_ec_private_key(raw: str) -> ec.EllipticCurvePrivateKey:
    key: ec.EllipticCurvePrivateKey = _load_private_key(
        raw,
        family="ECDSA",
        native_label="EC PRIVATE KEY",
        key_type=ec.EllipticCurvePrivateKey,
    )
    return key


def describe_private_key(key: Any) -> str | None:
    """Size-only description of a private key, or None for non-key values."""
    if isinstance(key, rsa.RSAPrivateKey):
        return f"<RSAPrivateKey {key.key_size} bits>"
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return f"<EllipticCurvePrivateKey {key.curve.name}>"
    return None


def register(registry: ParserRegistry) -> None:
    registry.register(rsa.RSAPrivateKey, parse_rsa_private_key)
    registry.register(ec.EllipticCurvePrivateKey, parse_ec_private_key)
