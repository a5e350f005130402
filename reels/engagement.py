"""Like and comment state for one video, updated optimistically.

Both writes are two-phase: the local change is applied first, the request is
issued, and the server's answer either replaces the local values or the
change is rolled back.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .context import FeedContext, Notice
from .errors import ReelsError, UnauthorizedError, ValidationError
from .models import Comment, VideoRecord

logger = logging.getLogger(__name__)


@dataclass
class LikeState:
    liked: bool = False
    like_count: int = 0

    def flipped(self) -> "LikeState":
        return LikeState(not self.liked, self.like_count + (-1 if self.liked else 1))


class LikeController:
    """Like status and count for one video as seen by the current viewer.

    Toggles are neither queued nor coalesced. Two toggles in flight for the
    same video race on the server and the response that lands last wins.
    """

    def __init__(self, video: VideoRecord, context: FeedContext):
        self.video = video
        self.context = context
        self.state = LikeState(liked=False, like_count=video.likes)
        self.pending = 0
        self.closed = False

    @property
    def liked(self) -> bool:
        return self.state.liked

    @property
    def like_count(self) -> int:
        return self.state.like_count

    async def refresh(self) -> bool:
        session = self.context.session
        if session is None:
            self.state.liked = False
            return False
        try:
            liked = await self.context.client.get_like_status(self.video.id, session)
        except ReelsError as exc:
            logger.warning("Error checking like status for %s: %s", self.video.id, exc)
            liked = False
        if not self.closed:
            self.state.liked = liked
        return liked

    async def toggle(self) -> LikeState:
        session = self.context.session
        if session is None:
            self.context.notify(Notice("Login required", "Please login to like videos", "destructive"))
            raise UnauthorizedError("Login required to like videos")

        previous = LikeState(self.state.liked, self.state.like_count)
        self.state = previous.flipped()
        self.pending += 1
        try:
            result = await self.context.client.toggle_like(self.video.id, session)
        except ReelsError:
            if not self.closed:
                self.state = previous
                self.context.notify(Notice("Error", "Failed to like video", "destructive"))
            logger.warning("Like toggle failed for %s; reverted", self.video.id)
            raise
        finally:
            self.pending -= 1
        if not self.closed:
            self.state = LikeState(result.liked, result.likes)
        return self.state

    def close(self) -> None:
        self.closed = True


class CommentPanel:
    """Comment sheet for one video, opened on demand."""

    def __init__(self, video_id: str, context: FeedContext, max_length: int = 500):
        self.video_id = video_id
        self.context = context
        self.max_length = max_length
        self.comments: List[Comment] = []
        self.draft = ""
        self.loading = False
        self.submitting = False
        self.closed = False

    async def open(self) -> List[Comment]:
        self.loading = True
        try:
            comments = await self.context.client.list_comments(self.video_id)
        except ReelsError as exc:
            logger.warning("Error fetching comments for %s: %s", self.video_id, exc)
            self.context.notify(Notice("Error", "Failed to load comments", "destructive"))
            comments = []
        finally:
            self.loading = False
        if not self.closed:
            self.comments = comments
        return self.comments

    async def submit(self) -> Optional[Comment]:
        session = self.context.session
        if session is None:
            self.context.notify(Notice("Login required", "Please login to comment", "destructive"))
            raise UnauthorizedError("Login required to comment")

        text = self.draft.strip()
        if not text:
            raise ValidationError("Comment text is required")
        if len(text) > self.max_length:
            raise ValidationError(f"Comment must be at most {self.max_length} characters")

        self.submitting = True
        self.draft = ""
        try:
            comment = await self.context.client.post_comment(self.video_id, text, session)
        except ReelsError:
            if not self.closed:
                self.draft = text
                self.context.notify(Notice("Error", "Failed to post comment", "destructive"))
            logger.warning("Posting comment on %s failed", self.video_id)
            raise
        finally:
            self.submitting = False
        if not self.closed:
            self.comments.insert(0, comment)
            self.context.notify(Notice("Comment posted", "Your comment has been added"))
        return comment

    def close(self) -> None:
        self.closed = True


def share_link(video_id: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/videos/{video_id}"


async def share_video(video: VideoRecord, context: FeedContext, url: str) -> bool:
    """Share through the platform when it can, otherwise copy the link.

    Returns False when the share sheet was dismissed or refused.
    """
    if context.share is None:
        context.copy_link(url)
        context.notify(Notice("Link copied", "Video link copied to clipboard"))
        return True
    try:
        await context.share({"title": video.title, "text": video.description, "url": url})
    except Exception as exc:
        # Cancelled by the viewer or refused by the platform.
        logger.info("Share of %s did not complete: %s", video.id, exc)
        return False
    context.notify(Notice("Shared", "Video shared successfully"))
    return True
