"""
tts-cache Services Layer.

The public entry point. It sits between the host application (which owns
the generation function) and the cache/sequencing components in tts/.

Components:
    - cache_service.py: TTSCacheService and the process-wide get_service()

TTSCacheService handles:
    - Configuration of limits and timeout
    - Deduplicated background generation (preload)
    - Session-ordered retrieval (request / request_result)
    - Error capture as FAILED entries and GenerationResult codes
"""
from tts_cache.tts.driver import (
    ErrorCode,
    GenerationError,
    GenerationResult,
    GenerationTimeoutError,
    NotConfiguredError,
    TTSCacheError,
)

from .cache_service import TTSCacheService, get_service, reset_service

__all__ = [
    "TTSCacheService",
    "get_service",
    "reset_service",
    "GenerationResult",
    "TTSCacheError",
    "NotConfiguredError",
    "GenerationError",
    "GenerationTimeoutError",
    "ErrorCode",
]
