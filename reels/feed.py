"""The vertical reel feed: loaded slides, the active slide and pagination."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .config import get_settings
from .context import FeedContext
from .engagement import CommentPanel, LikeController, share_link, share_video
from .errors import ReelsError
from .models import VideoRecord
from .playback import MediaElement, SlidePlayer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisibilityEvent:
    index: int
    ratio: float


def select_active(current: Optional[int], event: VisibilityEvent, threshold: float) -> Optional[int]:
    # Last event over the threshold wins; there is no other tie-break.
    if event.ratio > threshold:
        return event.index
    return current


def scroll_fraction(scroll_top: float, scroll_height: float, client_height: float) -> float:
    if scroll_height <= 0:
        return 0.0
    return (scroll_top + client_height) / scroll_height


@dataclass
class Slide:
    video: VideoRecord
    likes: LikeController
    player: Optional[SlidePlayer] = None
    comments: Optional[CommentPanel] = None


class ReelFeedController:
    """Owns the growing list of slides and decides which one plays.

    Pages are appended in the order the server returns them and are never
    de-duplicated, reordered or dropped. At most one page request is in
    flight; triggers that arrive meanwhile are ignored.
    """

    def __init__(
        self,
        context: FeedContext,
        seed: Sequence[VideoRecord] = (),
        page_size: Optional[int] = None,
        media_factory: Optional[Callable[[VideoRecord], MediaElement]] = None,
        scroll_into_view: Optional[Callable[[int], None]] = None,
    ):
        s = get_settings()
        self.context = context
        self.page_size = page_size or s.page_size_default
        self.load_more_threshold = s.load_more_threshold
        self.active_threshold = s.active_ratio_threshold
        self.comment_max_length = s.comment_max_length
        self.public_base_url = s.public_base_url
        self.media_factory = media_factory
        self.scroll_into_view = scroll_into_view
        self.slides: List[Slide] = []
        self.active_index: Optional[int] = None
        self.loading = False
        self.has_more = True
        self.error: Optional[str] = None
        self.closed = False
        self._events: "asyncio.Queue[Optional[VisibilityEvent]]" = asyncio.Queue()
        self._append(seed)

    @property
    def videos(self) -> List[VideoRecord]:
        return [slide.video for slide in self.slides]

    @property
    def is_empty(self) -> bool:
        return not self.slides and not self.loading

    @property
    def caught_up(self) -> bool:
        return not self.has_more and bool(self.slides)

    def is_active(self, index: int) -> bool:
        return self.active_index == index

    def _append(self, videos: Sequence[VideoRecord]) -> List[Slide]:
        added = []
        for video in videos:
            index = len(self.slides)
            slide = Slide(video=video, likes=LikeController(video, self.context))
            if self.media_factory is not None:
                slide.player = SlidePlayer(
                    video,
                    self.media_factory(video),
                    self.context.gate,
                    on_ended=self._ended_callback(index),
                )
            self.slides.append(slide)
            added.append(slide)
        return added

    def _ended_callback(self, index: int):
        async def ended() -> None:
            await self.on_video_ended(index)
        return ended

    async def _mount(self, slides: Sequence[Slide]) -> None:
        for slide in slides:
            if slide.player is not None:
                slide.player.begin_loading()
        await asyncio.gather(*(slide.likes.refresh() for slide in slides))

    async def mount(self) -> None:
        """Mount the seed slides: query like status and activate the first slide."""
        await self._mount(self.slides)
        if self.slides and self.active_index is None:
            await self.set_active(0)

    async def load_more(self) -> int:
        if self.loading or not self.has_more or self.closed:
            return 0

        self.loading = True
        self.error = None
        try:
            page = await self.context.client.fetch_page(self.page_size, len(self.slides))
        except ReelsError as exc:
            logger.warning("Error loading videos at offset %d: %s", len(self.slides), exc)
            if not self.closed:
                self.error = "Failed to load more videos"
            return 0
        finally:
            self.loading = False

        if self.closed:
            return 0
        added = self._append(page.videos)
        self.has_more = page.pagination.has_more if page.videos else False
        logger.debug("Loaded %d videos (total %d, has_more=%s)", len(added), len(self.slides), self.has_more)
        if self.active_index is None and self.slides:
            await self.set_active(0)
        await self._mount(added)
        return len(added)

    async def retry(self) -> int:
        self.error = None
        return await self.load_more()

    async def on_scroll(self, scroll_top: float, scroll_height: float, client_height: float) -> bool:
        fraction = scroll_fraction(scroll_top, scroll_height, client_height)
        if fraction > self.load_more_threshold and self.has_more and not self.loading:
            await self.load_more()
            return True
        return False

    def report_visibility(self, index: int, ratio: float) -> None:
        if not self.closed:
            self._events.put_nowait(VisibilityEvent(index, ratio))

    async def run(self) -> None:
        """Consume visibility events until the feed is closed."""
        while True:
            event = await self._events.get()
            if event is None or self.closed:
                return
            await self.apply_visibility(event)

    async def drain(self) -> None:
        """Apply every visibility event already queued, without waiting for more."""
        while not self._events.empty():
            event = self._events.get_nowait()
            if event is None or self.closed:
                return
            await self.apply_visibility(event)

    async def apply_visibility(self, event: VisibilityEvent) -> None:
        if not 0 <= event.index < len(self.slides):
            return
        index = select_active(self.active_index, event, self.active_threshold)
        if index != self.active_index:
            await self.set_active(index)

    async def set_active(self, index: int) -> None:
        self.active_index = index
        for i, slide in enumerate(self.slides):
            if i != index and slide.player is not None:
                slide.player.deactivate()
        player = self.slides[index].player
        if player is not None:
            await player.activate()

    async def on_video_ended(self, index: int) -> None:
        if self.closed or index != self.active_index:
            return
        if index < len(self.slides) - 1:
            await self.set_active(index + 1)
            if self.scroll_into_view is not None:
                self.scroll_into_view(index + 1)

    def record_interaction(self, event: str = "click") -> None:
        self.context.gate.record(event)

    async def tap(self, index: int) -> None:
        player = self.slides[index].player
        if player is not None:
            await player.tap()
        else:
            self.context.gate.record("click")

    async def toggle_like(self, index: int):
        return await self.slides[index].likes.toggle()

    async def share(self, index: int) -> bool:
        video = self.slides[index].video
        return await share_video(video, self.context, share_link(video.id, self.public_base_url))

    async def open_comments(self, index: int) -> CommentPanel:
        slide = self.slides[index]
        if slide.comments is None or slide.comments.closed:
            slide.comments = CommentPanel(slide.video.id, self.context, self.comment_max_length)
        await slide.comments.open()
        return slide.comments

    def close_comments(self, index: int) -> None:
        panel = self.slides[index].comments
        if panel is not None:
            panel.close()
            self.slides[index].comments = None

    def close(self) -> None:
        """Unmount: stop observing visibility and ignore results that land later."""
        self.closed = True
        self._events.put_nowait(None)
        for slide in self.slides:
            slide.likes.close()
            if slide.comments is not None:
                slide.comments.close()
            if slide.player is not None:
                slide.player.deactivate()
