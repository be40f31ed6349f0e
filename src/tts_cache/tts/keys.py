"""
Cache Keys and Size Estimation.

Fingerprints:
    A fingerprint is the SHA256 of the JSON array
    [service, language, voice, text]. JSON quoting keeps field
    boundaries unambiguous, so ("a:b", "c") and ("a", "b:c") can never
    share a key, and field order is part of the hash. No normalization
    is applied: "Hello" and "hello " are different requests.

Size Estimation:
    Artifacts are opaque to the cache. Bytes-like values are measured
    directly, strings by their UTF-8 length, anything else by the length
    of its compact JSON encoding. Values that can't be serialized fall
    back to a fixed estimate so that storing them never fails.

Example:
    >>> fp = make_fingerprint("aws", "en-US", "female", "Hello")
    >>> len(fp)
    64
    >>> estimate_size(b"RIFF....")
    8
"""
from __future__ import annotations

import hashlib
import json
from typing import Any

from tts_cache.core.config import Defaults


def hash_bytes(data: bytes) -> str:
    """SHA256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def make_fingerprint(service: str, language: str, voice: str, text: str) -> str:
    """
    Generate the cache key for one generation request.

    Args:
        service: Generation backend name (e.g., "aws", "azure").
        language: Language code (e.g., "en-US").
        voice: Voice identifier.
        text: Text to generate, exactly as given.

    Returns:
        64-character lowercase hex string.
    """
    payload = json.dumps(
        [service, language, voice, text],
        ensure_ascii=True,
        separators=(",", ":"),
    ).encode("utf-8")
    return hash_bytes(payload)


def estimate_size(artifact: Any, fallback: int = Defaults.CACHE_FALLBACK_ENTRY_SIZE) -> int:
    """
    Estimate the serialized size of an artifact in bytes.

    Args:
        artifact: Value returned by the generation function.
        fallback: Size reported when the artifact can't be measured.

    Returns:
        Estimated size in bytes (never raises).
    """
    if isinstance(artifact, (bytes, bytearray)):
        return len(artifact)
    if isinstance(artifact, memoryview):
        return artifact.nbytes
    if isinstance(artifact, str):
        return len(artifact.encode("utf-8", "surrogatepass"))

    try:
        return len(json.dumps(artifact, ensure_ascii=False, separators=(",", ":")).encode("utf-8", "surrogatepass"))
    except (TypeError, ValueError, RecursionError):
        return fallback
