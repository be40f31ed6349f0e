def test_logging_jsonl_persistence(monkeypatch):
    import json
    import logging
    import shutil
    from pathlib import Path
    from uuid import uuid4

    from tts_cache.core.logging import configure_logging, get_logger, info, set_request_id

    base_dir = Path("logs_test") / str(uuid4())
    base_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("TTS_CACHE_LOG_DIR", str(base_dir))
    monkeypatch.setenv("TTS_CACHE_JSONL_FILE", "test.jsonl")

    try:
        configure_logging(force=True)
        log = get_logger("test")
        set_request_id("rid-1")
        info(log, "hello", event="logging_test", foo="bar", seconds=0.25)

        for handler in logging.getLogger().handlers:
            if hasattr(handler, "flush"):
                handler.flush()

        log_path = base_dir / "test.jsonl"
        assert log_path.exists()

        line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "hello"
        assert payload["request_id"] == "rid-1"
        assert payload["event"] == "logging_test"
        assert payload["seconds"] == 0.25
        assert payload["extra"]["foo"] == "bar"
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        monkeypatch.delenv("TTS_CACHE_LOG_DIR")
        configure_logging(force=True)
        shutil.rmtree(base_dir, ignore_errors=True)


def test_cache_events_are_logged_with_key_prefix(monkeypatch):
    """Generation lifecycle lines carry key=<8 hex chars>, never the full fingerprint."""
    import asyncio
    import json
    import logging
    import shutil
    from pathlib import Path
    from uuid import uuid4

    from tts_cache.core.logging import configure_logging
    from tts_cache.services import TTSCacheService
    from tts_cache.tts.keys import make_fingerprint

    base_dir = Path("logs_test") / str(uuid4())
    base_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("TTS_CACHE_LOG_DIR", str(base_dir))
    monkeypatch.setenv("TTS_CACHE_JSONL_FILE", "cache.jsonl")

    async def generate(service, language, voice, text):
        return b"audio"

    async def run_test():
        service = TTSCacheService()
        service.configure(generate)
        await service.request("aws", "en-US", "female", "Logged", "s1")

    try:
        configure_logging(level=2, force=True)
        asyncio.run(run_test())
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = [
            json.loads(line)
            for line in (base_dir / "cache.jsonl").read_text(encoding="utf-8").splitlines()
        ]
        messages = [p["message"] for p in lines]
        assert "generation_started" in messages
        assert "generation_completed" in messages

        fp = make_fingerprint("aws", "en-US", "female", "Logged")
        completed = next(p for p in lines if p["message"] == "generation_completed")
        assert completed["extra"]["key"] == fp[:8]
        assert fp not in json.dumps(lines)
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        monkeypatch.delenv("TTS_CACHE_LOG_DIR")
        configure_logging(force=True)
        shutil.rmtree(base_dir, ignore_errors=True)
