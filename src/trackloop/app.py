"""Composition root wiring store, playlist, playback and settings together.

A host UI builds one `TrackloopSession`, subscribes a renderer to it and
forwards user intents to `session.playlist` / `session.controller`. Settings
(volume and playlist loop) go through the session so every change is written
to the settings file.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from pathlib import Path

from trackloop.services.fake_backend import FakeMediaBackend
from trackloop.services.media_backend import MediaBackend
from trackloop.services.playback_controller import PlaybackController
from trackloop.services.playlist_service import PlaylistManager
from trackloop.services.track_store import TrackStore
from trackloop.state_store import AppState, load_state_with_notice, save_state
from trackloop.utils.async_utils import run_blocking

logger = logging.getLogger(__name__)

Subscriber = Callable[[object], Awaitable[None]]


class TrackloopSession:
    """Owns one playlist, its playback controller and persisted settings."""

    def __init__(
        self,
        *,
        db_path: Path,
        state_path: Path,
        backend: MediaBackend | None = None,
        resave_unchanged: bool = True,
    ) -> None:
        self._state_path = Path(state_path)
        self._subscribers: list[Subscriber] = []
        self.settings = AppState()
        self.notice: str | None = None
        self.store = TrackStore(db_path)
        self.playlist = PlaylistManager(self.store, resave_unchanged=resave_unchanged)
        self.backend: MediaBackend = backend or FakeMediaBackend()
        # The controller registers its playlist listener first so renderers see
        # playlist events after the cursor has been adjusted.
        self.controller = PlaybackController(
            playlist=self.playlist,
            backend=self.backend,
            emit_event=self._dispatch,
        )
        self.playlist.add_listener(self._dispatch)

    def subscribe(self, subscriber: Subscriber) -> None:
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    async def start(self) -> None:
        """Read settings, open the store, start playback and restore the list."""
        self.settings, self.notice = await run_blocking(
            load_state_with_notice, self._state_path
        )
        if self.notice:
            logger.warning("Settings notice: %s", self.notice.splitlines()[0])
        await self.store.initialize()
        await self.controller.start()
        await self.controller.set_volume(self.settings.volume)
        await self.controller.set_playlist_loop(self.settings.playlist_loop)
        await self.playlist.load()

    async def shutdown(self) -> None:
        await self.controller.shutdown()

    async def set_volume(self, volume: float) -> float:
        applied = await self.controller.set_volume(volume)
        await self._save_settings(replace(self.settings, volume=applied))
        return applied

    async def set_playlist_loop(self, enabled: bool) -> None:
        await self.controller.set_playlist_loop(enabled)
        await self._save_settings(replace(self.settings, playlist_loop=bool(enabled)))

    async def _save_settings(self, state: AppState) -> None:
        self.settings = state
        await run_blocking(save_state, self._state_path, state)

    async def _dispatch(self, event: object) -> None:
        for subscriber in list(self._subscribers):
            await subscriber(event)
