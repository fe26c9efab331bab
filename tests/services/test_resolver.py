"""
Tests for the resolution pipeline.

Covers lookup order, in-flight deduplication and failure handling.
"""
import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from conftest import SAMPLE_LRC, FakeProvider
from rk_karaoke.services import LOCAL_PROVIDER, Resolver
from rk_karaoke.services import library as library_module
from rk_karaoke.services.store import Store

ARTIST = "Daft Punk"
TITLE = "Around The World"


class TestLookupOrder:

    @pytest.mark.asyncio
    async def test_provider_hit_is_saved_and_indexed(self, make_resolver, provider, store):
        resolver = make_resolver(provider)
        await resolver.init()

        entry = await resolver.resolve(ARTIST, TITLE)

        assert entry is not None
        assert entry.provider == "fake"
        assert entry.lines_count == 2
        assert resolver.library.find(ARTIST, TITLE) == entry
        doc = await store.load(entry.json_path)
        assert doc.title == TITLE

    @pytest.mark.asyncio
    async def test_index_hit_skips_local_files_and_providers(self, make_resolver, provider,
                                                             monkeypatch):
        resolver = make_resolver(provider)
        await resolver.init()
        cached = await resolver.resolve(ARTIST, TITLE)
        provider.calls.clear()

        check_local = AsyncMock(return_value=None)
        monkeypatch.setattr(resolver, "check_local_files", check_local)

        assert await resolver.resolve("DAFT PUNK", "Around The World (Radio Edit)") == cached
        assert provider.calls == []
        check_local.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_staged_lrc_file_skips_providers(self, make_resolver, provider, store):
        resolver = make_resolver(provider)
        await resolver.init()
        staged = store.raw_dir / "Daft_Punk_-_Around_The_World.lrc"
        staged.write_text(SAMPLE_LRC, encoding="utf-8")

        entry = await resolver.resolve(ARTIST, TITLE)

        assert entry.provider == LOCAL_PROVIDER
        assert entry.format == "lrc"
        assert provider.calls == []
        assert resolver.library.has(ARTIST, TITLE)

    @pytest.mark.asyncio
    async def test_staged_srt_file_is_imported(self, make_resolver, store):
        resolver = make_resolver()
        await resolver.init()
        staged = store.raw_dir / "Daft_Punk_-_Around_The_World.srt"
        staged.write_text("1\n00:00:01,000 --> 00:00:03,000\nHello world\n", encoding="utf-8")

        entry = await resolver.resolve(ARTIST, TITLE)

        assert entry.format == "srt"
        assert entry.lines_count == 1

    @pytest.mark.asyncio
    async def test_providers_are_tried_in_order(self, make_resolver):
        first = FakeProvider(name="first")
        second = FakeProvider(name="second", default=SAMPLE_LRC)
        third = FakeProvider(name="third", default=SAMPLE_LRC)
        resolver = make_resolver(first, second, third)
        await resolver.init()

        entry = await resolver.resolve(ARTIST, TITLE)

        assert entry.provider == "second"
        assert len(first.calls) == 1
        assert third.calls == []

    @pytest.mark.asyncio
    async def test_skip_local_ignores_index(self, make_resolver, provider):
        resolver = make_resolver(provider)
        await resolver.init()
        await resolver.resolve(ARTIST, TITLE)

        await resolver.resolve(ARTIST, TITLE, skip_local=True)
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_skip_providers(self, make_resolver, provider):
        resolver = make_resolver(provider)
        await resolver.init()
        assert await resolver.resolve(ARTIST, TITLE, skip_providers=True) is None
        assert provider.calls == []


class TestMisses:

    @pytest.mark.asyncio
    async def test_miss_is_not_cached(self, make_resolver):
        provider = FakeProvider()
        resolver = make_resolver(provider)
        await resolver.init()

        assert await resolver.resolve(ARTIST, TITLE) is None
        assert len(resolver.library) == 0
        assert await resolver.resolve(ARTIST, TITLE) is None
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_provider_exception_is_swallowed(self, make_resolver, caplog):
        caplog.set_level(logging.INFO)
        broken = FakeProvider(name="broken", error=RuntimeError("connection reset"))
        backup = FakeProvider(name="backup", default=SAMPLE_LRC)
        resolver = make_resolver(broken, backup)
        await resolver.init()

        entry = await resolver.resolve(ARTIST, TITLE)

        assert entry.provider == "backup"
        assert "RuntimeError" in caplog.text

    @pytest.mark.asyncio
    async def test_no_providers(self, make_resolver):
        resolver = make_resolver()
        await resolver.init()
        assert await resolver.resolve(ARTIST, TITLE) is None


class TestInFlight:

    @pytest.mark.asyncio
    async def test_concurrent_resolves_share_one_run(self, make_resolver):
        provider = FakeProvider(default=SAMPLE_LRC)
        provider.gate = asyncio.Event()
        resolver = make_resolver(provider)
        await resolver.init()

        tasks = [
            asyncio.ensure_future(resolver.resolve(ARTIST, TITLE)),
            asyncio.ensure_future(resolver.resolve("daft punk", "around the world")),
            asyncio.ensure_future(resolver.resolve(ARTIST, TITLE + " (Original Mix)")),
        ]
        await asyncio.sleep(0.01)
        assert resolver.pending_keys() == ["daft punk::around the world"]

        provider.gate.set()
        results = await asyncio.gather(*tasks)

        assert len(provider.calls) == 1
        assert results[0] is not None
        assert all(result == results[0] for result in results)
        assert resolver.pending_keys() == []

    @pytest.mark.asyncio
    async def test_different_keys_run_independently(self, make_resolver, provider):
        resolver = make_resolver(provider)
        await resolver.init()
        results = await asyncio.gather(
            resolver.resolve(ARTIST, TITLE),
            resolver.resolve("Queen", "Bohemian Rhapsody"),
        )
        assert len(provider.calls) == 2
        assert all(results)

    @pytest.mark.asyncio
    async def test_persistence_error_propagates_and_clears_token(self, make_resolver, provider,
                                                                 monkeypatch):
        resolver = make_resolver(provider)
        await resolver.init()

        original_save = Store.save

        async def failing_save(self, *args, **kwargs):
            raise OSError("No space left on device")

        monkeypatch.setattr(Store, "save", failing_save)
        with pytest.raises(OSError):
            await resolver.resolve(ARTIST, TITLE)
        assert resolver.pending_keys() == []

        monkeypatch.setattr(Store, "save", original_save)
        entry = await resolver.resolve(ARTIST, TITLE)
        assert entry is not None

    @pytest.mark.asyncio
    async def test_failed_index_write_leaves_no_index_hit(self, make_resolver, provider,
                                                          monkeypatch):
        resolver = make_resolver(provider)
        await resolver.init()

        def failing_write(path, data):
            raise OSError("Permission denied")

        monkeypatch.setattr(library_module, "write_json_atomic", failing_write)
        with pytest.raises(OSError):
            await resolver.resolve(ARTIST, TITLE)
        assert resolver.library.find(ARTIST, TITLE) is None
        assert not resolver.library.path.exists()

        monkeypatch.undo()
        entry = await resolver.resolve(ARTIST, TITLE)
        assert entry is not None
        assert len(provider.calls) == 2
        assert resolver.library.path.exists()

    @pytest.mark.asyncio
    async def test_concurrent_resolves_read_staged_file_once(self, make_resolver, provider,
                                                             store, monkeypatch):
        resolver = make_resolver(provider)
        await resolver.init()
        (store.raw_dir / "Daft_Punk_-_Around_The_World.lrc").write_text(SAMPLE_LRC, encoding="utf-8")

        gate = asyncio.Event()
        local_checks = []
        check_local_files = resolver.check_local_files

        async def gated_check(artist, title):
            local_checks.append((artist, title))
            await gate.wait()
            return await check_local_files(artist, title)

        monkeypatch.setattr(resolver, "check_local_files", gated_check)
        tasks = [asyncio.ensure_future(resolver.resolve(ARTIST, TITLE)) for _ in range(4)]
        await asyncio.sleep(0.01)
        gate.set()
        results = await asyncio.gather(*tasks)

        assert len(local_checks) == 1
        assert provider.calls == []
        assert results[0].provider == LOCAL_PROVIDER
        assert all(result == results[0] for result in results)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_run(self, make_resolver):
        provider = FakeProvider(default=SAMPLE_LRC)
        provider.gate = asyncio.Event()
        resolver = make_resolver(provider)
        await resolver.init()

        impatient = asyncio.ensure_future(resolver.resolve(ARTIST, TITLE))
        patient = asyncio.ensure_future(resolver.resolve(ARTIST, TITLE))
        await asyncio.sleep(0.01)
        impatient.cancel()
        provider.gate.set()

        assert (await patient) is not None
        assert impatient.cancelled()


class TestFromConfig:

    def test_builds_components_from_config(self, app_config):
        resolver = Resolver.from_config(app_config)
        assert resolver.library.path == app_config.paths.library
        assert resolver.store.raw_dir == app_config.paths.lyrics_raw
        assert resolver.providers == []

    @pytest.mark.asyncio
    async def test_init_loads_library_once(self, app_config):
        resolver = Resolver.from_config(app_config)
        await resolver.init()
        assert resolver.library.loaded
        assert app_config.paths.lyrics_json.is_dir()
