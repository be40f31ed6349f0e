"""
Tests for RequestDriver: the generation path, timeouts and settlement.

Tests cover:
- Deduplication of identical requests while pending and after completion
- Failure capture (raise, None result) as FAILED entries
- Timeouts abandon the call instead of cancelling it
- Stale settlements after removal are discarded
- Synchronous generate functions
- preload() outside a running event loop
"""
from __future__ import annotations

import asyncio

from tts_cache.tts.cache import ArtifactCache, EntryStatus
from tts_cache.tts.driver import ErrorCode, GenerationResult, RequestDriver
from tts_cache.tts.keys import make_fingerprint
from tts_cache.tts.sequencer import SequenceCoordinator


def _make(generate, timeout_s=1.0, max_entries=100):
    cache = ArtifactCache(max_entries=max_entries, max_size_bytes=1_000_000)
    seq = SequenceCoordinator(cache)
    cache.add_eviction_listener(seq.forget)
    driver = RequestDriver(generate, cache, seq, timeout_s=timeout_s)
    cache.add_eviction_listener(driver.forget)
    return cache, seq, driver


class CountingGenerator:
    """Async generator stub that records every call."""

    def __init__(self, delay=0.01, result=None, exc=None):
        self.calls = []
        self.delay = delay
        self.result = result
        self.exc = exc

    async def __call__(self, service, language, voice, text):
        self.calls.append(text)
        await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.result if self.result is not None else f"audio:{text}"


class TestGenerationPath:
    """preload -> PENDING -> COMPLETED."""

    def test_preload_then_completed(self):
        async def run_test():
            gen = CountingGenerator()
            cache, seq, driver = _make(gen)
            fp = driver.preload("aws", "en-US", "f", "Hello", "s1")

            assert fp == make_fingerprint("aws", "en-US", "f", "Hello")
            assert cache.is_pending(fp)
            assert driver.pending_count == 1
            assert seq.sequence("s1") == [fp]

            await asyncio.sleep(0.05)
            assert cache.is_completed(fp)
            assert cache.lookup(fp).size_bytes == len("audio:Hello")
            assert driver.pending_count == 0

        asyncio.run(run_test())

    def test_duplicate_preload_generates_once(self):
        async def run_test():
            gen = CountingGenerator()
            cache, _, driver = _make(gen)
            driver.preload("aws", "en-US", "f", "Hello", "s1")
            driver.preload("aws", "en-US", "f", "Hello", "s2")
            await asyncio.sleep(0.05)
            driver.preload("aws", "en-US", "f", "Hello", "s1")
            result = await driver.request("aws", "en-US", "f", "Hello", "s3")
            return gen.calls, result

        calls, result = asyncio.run(run_test())
        assert calls == ["Hello"]
        assert result.ok and result.artifact == "audio:Hello"

    def test_concurrent_requests_share_one_call(self):
        async def run_test():
            gen = CountingGenerator(delay=0.05)
            _, _, driver = _make(gen)
            results = await asyncio.gather(*[
                driver.request("aws", "en-US", "f", "Hi", f"s{i}") for i in range(5)
            ])
            return gen.calls, results

        calls, results = asyncio.run(run_test())
        assert calls == ["Hi"]
        assert all(r.artifact == "audio:Hi" for r in results)

    def test_request_without_preload(self):
        async def run_test():
            gen = CountingGenerator()
            cache, seq, driver = _make(gen)
            result = await driver.request("aws", "en-US", "f", "Direct", "s1")

            assert seq.defaults_for("s1").service == "aws"
            assert cache.is_completed(result.fingerprint)
            return result

        result = asyncio.run(run_test())
        assert isinstance(result, GenerationResult)
        assert result.ok
        assert result.seconds >= 0.0

    def test_sync_generate_function(self):
        def generate(service, language, voice, text):
            return text.upper()

        async def run_test():
            _, _, driver = _make(generate)
            return await driver.request("s", "l", "v", "quiet", "s1")

        assert asyncio.run(run_test()).artifact == "QUIET"


class TestFailures:
    """Failures are stored, never raised."""

    def test_raising_generator(self):
        async def run_test():
            gen = CountingGenerator(exc=RuntimeError("boom"))
            cache, _, driver = _make(gen)
            result = await driver.request("aws", "en-US", "f", "Bad", "s1")
            entry = cache.lookup(result.fingerprint)
            return result, entry

        result, entry = asyncio.run(run_test())
        assert not result.ok
        assert result.error == ErrorCode.GENERATION_FAILED
        assert entry.status is EntryStatus.FAILED
        assert entry.size_bytes == 0

    def test_none_result_is_invalid(self):
        async def run_test():
            async def generate(service, language, voice, text):
                return None

            cache, _, driver = _make(generate)
            result = await driver.request("aws", "en-US", "f", "Empty", "s1")
            return result, cache.lookup(result.fingerprint)

        result, entry = asyncio.run(run_test())
        assert result.error == ErrorCode.INVALID_RESULT
        assert entry.status is EntryStatus.FAILED

    def test_failed_entry_is_not_retried(self):
        async def run_test():
            gen = CountingGenerator(exc=RuntimeError("boom"))
            _, _, driver = _make(gen)
            await driver.request("aws", "en-US", "f", "Bad", "s1")
            again = await driver.request("aws", "en-US", "f", "Bad", "s1")
            driver.preload("aws", "en-US", "f", "Bad", "s1")
            return gen.calls, again

        calls, again = asyncio.run(run_test())
        assert calls == ["Bad"]
        assert again.error == ErrorCode.GENERATION_FAILED


class TestTimeout:
    """Calls exceeding the timeout are abandoned."""

    def test_timeout_marks_failed_and_keeps_call_running(self):
        async def run_test():
            finished = []

            async def slow(service, language, voice, text):
                await asyncio.sleep(0.2)
                finished.append(text)
                return "late"

            cache, _, driver = _make(slow, timeout_s=0.05)
            result = await driver.request("aws", "en-US", "f", "Slow", "s1")

            assert result.error == ErrorCode.TIMEOUT
            assert cache.lookup(result.fingerprint).status is EntryStatus.FAILED
            assert driver.abandoned_count == 1

            await asyncio.sleep(0.3)
            # The call ran to completion but its result was discarded
            assert finished == ["Slow"]
            assert driver.abandoned_count == 0
            assert cache.lookup(result.fingerprint).status is EntryStatus.FAILED

        asyncio.run(run_test())


class TestStaleSettlement:
    """Results for removed entries never resurrect them."""

    def test_removed_while_pending(self):
        async def run_test():
            gen = CountingGenerator(delay=0.05)
            cache, seq, driver = _make(gen)
            fp = driver.preload("aws", "en-US", "f", "Gone", "s1")

            assert cache.remove(fp) is True
            assert driver.pending_count == 0
            assert seq.sequence("s1") == []

            await asyncio.sleep(0.1)
            assert fp not in cache

        asyncio.run(run_test())

    def test_regenerated_after_removal(self):
        async def run_test():
            gen = CountingGenerator()
            cache, _, driver = _make(gen)
            first = await driver.request("aws", "en-US", "f", "Again", "s1")
            cache.remove(first.fingerprint)
            second = await driver.request("aws", "en-US", "f", "Again", "s1")
            return gen.calls, second

        calls, second = asyncio.run(run_test())
        assert calls == ["Again", "Again"]
        assert second.ok

    def test_clear_discards_in_flight_results(self):
        async def run_test():
            gen = CountingGenerator(delay=0.05)
            cache, _, driver = _make(gen)
            fp = driver.preload("aws", "en-US", "f", "Reset", "s1")
            cache.clear()
            driver.clear()

            await asyncio.sleep(0.1)
            assert fp not in cache
            assert len(cache) == 0

        asyncio.run(run_test())


class TestNoEventLoop:
    """preload() needs a running loop to schedule work."""

    def test_preload_outside_loop_is_noop(self):
        gen = CountingGenerator()
        cache, seq, driver = _make(gen)

        assert driver.preload("aws", "en-US", "f", "Hello", "s1") is None
        assert len(cache) == 0
        assert seq.sequence("s1") == []
        assert gen.calls == []
