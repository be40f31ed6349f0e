"""
tts-cache: Deduplicating, session-ordered cache for speech generation.

Wraps an asynchronous generation function (typically a text-to-speech
backend) with an in-memory result cache and per-session ordering, so a
caller can fire off upcoming sentences early and still consume them in
the order they were issued.

Key Features:
    - Fingerprint-keyed cache: identical (service, language, voice, text)
      tuples are generated at most once while cached or in flight
    - Background preloading with per-session default parameters
    - Ordered retrieval: a request waits for every earlier item of its session
    - Bounded by entry count and aggregate artifact size (LRU eviction)
    - Per-call timeout; failures are captured, never raised
    - Structured logging and Prometheus metrics

Example Usage:
    >>> import asyncio
    >>> from tts_cache.services import TTSCacheService
    >>>
    >>> async def synthesize(service, language, voice, text):
    ...     return b"RIFF..."  # call your TTS backend here
    >>>
    >>> async def main():
    ...     cache = TTSCacheService()
    ...     cache.configure(synthesize, max_cache_entries=100, timeout_ms=5000)
    ...     cache.set_session_defaults("call-1", "aws", "en-US", "female")
    ...     cache.preload("Hello there.", "call-1")
    ...     return await cache.request("aws", "en-US", "female", "Hello there.", "call-1")
    >>>
    >>> audio = asyncio.run(main())
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
