"""
Command-Line Demo for tts-cache.

Runs the cache against a simulated generator so its behaviour can be
watched without a real speech backend: items are preloaded on one
session, then requested back in order, and the cache statistics are
printed.

Usage Examples:
    # Preload five items with a 200 ms simulated generator
    tts-cache

    # More items than the default 100-entry cache holds
    tts-cache --items 105 --delay-ms 200

    # Machine-readable output
    tts-cache --items 10 --json

    # Every third call fails, to show failure capture
    tts-cache --items 6 --fail-every 3

    # Limits and timeout from a settings file
    tts-cache --config config/settings.yaml

Environment Variables:
    TTS_CACHE_LOG_LEVEL: Log verbosity (1-4 or MINIMAL/NORMAL/VERBOSE/DEBUG)
    TTS_CACHE_TIMEOUT_MS / TTS_CACHE_MAX_ENTRIES / TTS_CACHE_MAX_SIZE_BYTES:
        Override limits when --config is used
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from typing import Any, Dict, List, Optional
from uuid import uuid4

from tts_cache.core.config import CacheServiceConfig, load_settings
from tts_cache.core.logging import configure_logging, get_logger, info, set_request_id
from tts_cache.services import TTSCacheService
from tts_cache.utils.timeit import timeit

SESSION_ID = "cli"
SERVICE, LANGUAGE, VOICE = "demo", "en-US", "default"


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="tts-cache demo (simulated generator)")

    parser.add_argument("--items", type=int, default=5,
                        help="Number of texts to preload (Hello 0..N-1)")
    parser.add_argument("--delay-ms", type=int, default=200,
                        help="Simulated generation latency per call")
    parser.add_argument("--fail-every", type=int, default=0, metavar="N",
                        help="Make every N-th generation call fail")

    parser.add_argument("--config", help="Settings YAML with cache/generation limits")
    parser.add_argument("--max-entries", type=int, help="Cache entry bound override")
    parser.add_argument("--timeout-ms", type=int, help="Generation timeout override")

    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    args = parser.parse_args(argv)
    if args.items < 1:
        parser.error("--items must be at least 1")
    if args.delay_ms < 0:
        parser.error("--delay-ms must be >= 0")
    if args.fail_every < 0:
        parser.error("--fail-every must be >= 0")
    return args


def _build_config(args: argparse.Namespace) -> CacheServiceConfig:
    """Settings file (if any) first, then command-line overrides."""
    if args.config:
        config = CacheServiceConfig.from_settings(load_settings(args.config))
    else:
        config = CacheServiceConfig()

    if args.max_entries is not None:
        config.cache.max_entries = args.max_entries
    if args.timeout_ms is not None:
        config.generation.timeout_ms = args.timeout_ms
    return config


async def _run_demo(args: argparse.Namespace, config: CacheServiceConfig) -> Dict[str, Any]:
    calls = 0

    async def generate(service: str, language: str, voice: str, text: str) -> Dict[str, str]:
        nonlocal calls
        calls += 1
        n = calls
        await asyncio.sleep(args.delay_ms / 1000.0)
        if args.fail_every and n % args.fail_every == 0:
            raise RuntimeError(f"simulated failure on call {n}")
        return {"text": text, "audio": f"<audio:{service}/{language}/{voice}:{text}>"}

    service = TTSCacheService(config)
    service.configure(
        generate,
        max_cache_size_bytes=config.cache.max_size_bytes,
        max_cache_entries=config.cache.max_entries,
        timeout_ms=config.generation.timeout_ms,
    )
    service.set_session_defaults(SESSION_ID, SERVICE, LANGUAGE, VOICE)

    texts = [f"Hello {i}" for i in range(args.items)]
    for text in texts:
        service.preload(text, SESSION_ID)
    info(get_logger("tts-cache.cli"), "preloaded", items=len(texts), pending=service.stats()["pending"])

    # The last item waits for every earlier item of the session
    requested = texts[-1]
    with timeit("request") as t:
        result = await service.request_result(SERVICE, LANGUAGE, VOICE, requested, SESSION_ID)

    failed = [
        text for text in texts
        if not service.is_completed(SERVICE, LANGUAGE, VOICE, text)
        and not service.is_pending(SERVICE, LANGUAGE, VOICE, text)
    ]

    return {
        "ok": True,
        "items": len(texts),
        "generate_calls": calls,
        "requested": requested,
        "result": result.artifact,
        "error": result.error,
        "seconds": round(t.seconds, 3),
        "not_completed": failed,
        "stats": service.stats(),
    }


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    args = _parse_args(argv)

    # Logging reads its section from the same settings file
    if args.config:
        os.environ["TTS_CACHE_SETTINGS"] = args.config

    configure_logging()
    set_request_id(str(uuid4())[:12])

    config = _build_config(args)
    payload = asyncio.run(_run_demo(args, config))

    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(f"items={payload['items']} generate_calls={payload['generate_calls']} seconds={payload['seconds']}")
        print(f"stats={payload['stats']}")
        print(f"request[{payload['requested']!r}] -> {payload['result'] if payload['error'] is None else payload['error']}")
        if payload["not_completed"]:
            print(f"not_completed={payload['not_completed']}")
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
