"""Tests for the fake media backend."""

from __future__ import annotations

import asyncio

from trackloop.services.fake_backend import FakeMediaBackend
from trackloop.services.media_backend import Ended, Paused, Played, TimeUpdated


def _run(coro):
    return asyncio.run(coro)


def test_play_progresses_and_pause_freezes() -> None:
    async def run() -> None:
        backend = FakeMediaBackend(tick_interval_ms=20, duration_ms=10_000)
        await backend.start()
        await backend.load(b"abc", name="a.mp3")
        await backend.play()
        await asyncio.sleep(0.12)
        pos = await backend.get_position_ms()
        assert pos > 0
        await backend.pause()
        await asyncio.sleep(0.08)
        assert await backend.get_position_ms() == pos
        await backend.shutdown()

    _run(run())


def test_duration_follows_payload_size() -> None:
    async def run() -> None:
        backend = FakeMediaBackend(ms_per_byte=2.0)
        await backend.load(b"x" * 300, name="a.mp3")
        assert await backend.get_duration_ms() == 600

    _run(run())


def test_end_emits_ended_once_and_play_restarts() -> None:
    events: list[object] = []

    async def handler(event) -> None:
        events.append(event)

    async def run() -> None:
        backend = FakeMediaBackend(duration_ms=100)
        backend.set_event_handler(handler)
        await backend.load(b"", name="a.mp3")
        await backend.play()
        await backend.advance(150)
        await backend.advance(50)
        assert events.count(Ended()) == 1
        assert backend.status == "paused"

        await backend.play()
        assert await backend.get_position_ms() == 0
        assert backend.status == "playing"

    _run(run())
    assert events[:2] == [TimeUpdated(0, 100), Played()]
    assert TimeUpdated(100, 100) in events


def test_loop_wraps_without_ending() -> None:
    events: list[object] = []

    async def handler(event) -> None:
        events.append(event)

    async def run() -> None:
        backend = FakeMediaBackend(duration_ms=100)
        backend.set_event_handler(handler)
        await backend.set_loop(True)
        await backend.load(b"", name="a.mp3")
        await backend.play()
        await backend.advance(250)
        assert await backend.get_position_ms() == 50
        assert backend.status == "playing"

    _run(run())
    assert Ended() not in events


def test_stop_unloads_and_keeps_settings() -> None:
    events: list[object] = []

    async def handler(event) -> None:
        events.append(event)

    async def run() -> None:
        backend = FakeMediaBackend(duration_ms=100)
        backend.set_event_handler(handler)
        await backend.set_volume(0.3)
        await backend.load(b"", name="a.mp3")
        await backend.play()
        await backend.stop()
        assert backend.status == "empty"
        assert backend.loaded_name is None
        assert backend.volume == 0.3
        await backend.play()
        assert backend.status == "empty"

    _run(run())
    assert events[-1] == Paused()
