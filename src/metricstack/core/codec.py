"""
Obfuscation codec.

Reversible repeating-key XOR over UTF-8 bytes, carried as standard base64
text. This masks payloads against casual inspection only and is not a
security boundary.
"""

import base64
import binascii
import json
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)


class CodecError(ValueError):
    """Raised when a token cannot be turned back into text."""


def xor_mask(data: bytes, key: bytes) -> bytes:
    """XOR each byte with key[i mod len(key)]. Self-inverse."""
    if not key:
        return bytes(data)
    key_len = len(key)
    return bytes(byte ^ key[i % key_len] for i, byte in enumerate(data))


def encode(plaintext: str, key: str) -> str:
    """Mask plaintext with key and return a base64 token."""
    if not key:
        raise CodecError("Encoding requires a non-empty key")
    masked = xor_mask(plaintext.encode("utf-8"), key.encode("utf-8"))
    return base64.b64encode(masked).decode("ascii")


def decode(token: str, key: Optional[str] = None) -> str:
    """
    Recover plaintext from a token.

    Without a key the base64 bytes are read directly as UTF-8, for callers
    that only base64-encode.

    Raises:
        CodecError: token is empty, not valid base64, or does not unmask
            to valid UTF-8.
    """
    if not isinstance(token, str):
        raise CodecError("Token must be text")

    stripped = token.strip()
    if not stripped:
        raise CodecError("Token is empty")

    try:
        raw = base64.b64decode(stripped, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CodecError(f"Malformed base64: {e}") from e

    if key:
        raw = xor_mask(raw, key.encode("utf-8"))

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CodecError("Decoded bytes are not valid UTF-8") from e


def try_decode(token: str, key: Optional[str] = None) -> Optional[str]:
    """Like decode() but returns None on failure."""
    try:
        return decode(token, key)
    except CodecError as e:
        logger.debug("Token decode failed", error=str(e), keyed=bool(key))
        return None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a JSON number")


def loads_json(text: str) -> Any:
    """
    Parse strict JSON text.

    NaN, Infinity and -Infinity are rejected so parsed values always
    serialize back to valid JSON.

    Raises:
        ValueError: text is not strict JSON (json.JSONDecodeError included).
    """
    return json.loads(text, parse_constant=_reject_constant)


def encode_payload(payload: Any, key: str) -> str:
    """Serialize payload as compact JSON and encode it."""
    return encode(json.dumps(payload, separators=(",", ":"), ensure_ascii=False), key)


def decode_payload(token: str, key: Optional[str] = None) -> Any:
    """
    Decode a token and parse the JSON inside.

    Raises:
        CodecError: decoding failed or the plaintext is not JSON.
    """
    plaintext = decode(token, key)
    try:
        return loads_json(plaintext)
    except ValueError as e:
        raise CodecError(f"Decoded text is not JSON: {e}") from e
