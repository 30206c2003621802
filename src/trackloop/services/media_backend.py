"""Media resource contract and event payloads.

`PlaybackController` depends on this protocol to stay engine-agnostic. The
resource is a single exclusive slot: `load` replaces whatever was loaded. When
its loop flag is set it restarts the media itself and does not emit `Ended`.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class MediaEvent:
    """Marker base type for media-resource events."""

    pass


@dataclass(frozen=True)
class Played(MediaEvent):
    """Playback started or resumed."""


@dataclass(frozen=True)
class Paused(MediaEvent):
    """Playback paused."""


@dataclass(frozen=True)
class Ended(MediaEvent):
    """Loaded media reached its end without looping."""


@dataclass(frozen=True)
class TimeUpdated(MediaEvent):
    """Periodic transport position update in milliseconds."""

    position_ms: int
    duration_ms: int


@dataclass(frozen=True)
class BackendError(MediaEvent):
    """Resource-reported non-recoverable runtime error."""

    message: str


class MediaBackend(Protocol):
    """Audio playback primitive consumed by `PlaybackController`."""

    def set_event_handler(
        self, handler: Callable[[MediaEvent], Awaitable[None]]
    ) -> None: ...

    async def start(self) -> None: ...

    async def shutdown(self) -> None: ...

    async def load(self, content: bytes, *, name: str) -> None: ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def stop(self) -> None: ...

    async def set_loop(self, loop: bool) -> None: ...

    async def seek_ms(self, position_ms: int) -> None: ...

    async def set_volume(self, volume: float) -> None: ...

    async def get_position_ms(self) -> int: ...

    async def get_duration_ms(self) -> int: ...
