"""Per-slide playback state and the session-wide autoplay gate.

A slide moves IDLE -> LOADING -> READY or ERROR once its media loads, and
from READY into PLAYING, PAUSED or NEEDS_INTERACTION. Autoplay is only
attempted after the viewer has interacted with the page at least once;
before that an active slide waits behind an explicit play affordance.
"""

import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from .models import VideoRecord

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    NEEDS_INTERACTION = "needs_interaction"
    ERROR = "error"


class PlaybackNotAllowed(Exception):
    """The platform refused to start playback without a user gesture."""


class PlaybackFailed(Exception):
    """Playback could not start for any other reason."""


class MediaElement(Protocol):
    async def play(self) -> None: ...

    def pause(self) -> None: ...


class InteractionGate:
    """Remembers whether the viewer has clicked, touched or pressed a key."""

    def __init__(self, interacted: bool = False):
        self.has_interacted = interacted

    def record(self, event: str = "click") -> None:
        if not self.has_interacted:
            logger.debug("First user interaction (%s); autoplay unlocked", event)
        self.has_interacted = True


class SlidePlayer:
    def __init__(self, video: VideoRecord, element: MediaElement, gate: InteractionGate,
                 on_ended: Optional[Callable[[], Awaitable[None]]] = None):
        self.video = video
        self.element = element
        self.gate = gate
        self.on_ended = on_ended
        self.state = PlaybackState.IDLE
        self.is_active = False
        self.loaded = False
        self._deactivations = 0

    @property
    def shows_play_button(self) -> bool:
        return self.state == PlaybackState.NEEDS_INTERACTION

    def begin_loading(self) -> None:
        if self.state == PlaybackState.IDLE:
            self.state = PlaybackState.LOADING

    async def on_loaded(self) -> None:
        self.loaded = True
        if self.state == PlaybackState.LOADING:
            self.state = PlaybackState.READY
        if self.is_active and self.state == PlaybackState.READY:
            await self._autoplay()

    def on_load_error(self) -> None:
        logger.warning("Failed to load video %s", self.video.id)
        self.state = PlaybackState.ERROR

    async def activate(self) -> None:
        self.is_active = True
        if not self.loaded or self.state in (PlaybackState.ERROR, PlaybackState.PLAYING):
            return
        await self._autoplay()

    def deactivate(self) -> None:
        self.is_active = False
        self._deactivations += 1
        if self.state in (PlaybackState.ERROR, PlaybackState.IDLE):
            return
        self.element.pause()
        self.state = PlaybackState.PAUSED

    async def tap(self) -> None:
        """Toggle play/pause. The tap itself counts as a user interaction."""
        self.gate.record("click")
        if self.state == PlaybackState.PLAYING:
            self.element.pause()
            self.state = PlaybackState.PAUSED
        elif self.loaded and self.state in (
            PlaybackState.READY,
            PlaybackState.PAUSED,
            PlaybackState.NEEDS_INTERACTION,
        ):
            await self._play()

    async def ended(self) -> None:
        self.state = PlaybackState.PAUSED
        if self.on_ended is not None:
            await self.on_ended()

    async def _autoplay(self) -> None:
        if not self.gate.has_interacted:
            self.state = PlaybackState.NEEDS_INTERACTION
            return
        await self._play()

    async def _play(self) -> None:
        seen = self._deactivations
        try:
            await self.element.play()
        except PlaybackNotAllowed:
            self.state = PlaybackState.NEEDS_INTERACTION
        except Exception as exc:
            # PlaybackFailed or anything else the element raises.
            logger.warning("Error playing video %s: %s", self.video.id, exc)
            self.state = PlaybackState.ERROR
        else:
            if self._deactivations != seen:
                # Deactivated while play() was pending.
                self.element.pause()
                return
            self.state = PlaybackState.PLAYING
