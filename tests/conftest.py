import asyncio
from typing import List, Optional

import pytest

from reels.context import FeedContext
from reels.models import Author, Comment, FeedPage, LikeToggleResult, Pagination, Session, VideoRecord
from reels.playback import InteractionGate


def make_video(i: int, likes: int = 0) -> VideoRecord:
    return VideoRecord(
        _id=f"v{i}",
        title=f"Video {i}",
        description="clip",
        videoUrl=f"https://media.example/v{i}.mp4",
        thumbnailUrl=f"https://media.example/v{i}.jpg",
        duration=30,
        likes=likes,
    )


def make_page(start: int, count: int, has_more: bool = True, total: int = 100) -> FeedPage:
    return FeedPage(
        videos=[make_video(i) for i in range(start, start + count)],
        pagination=Pagination(total=total, limit=count, offset=start, hasMore=has_more),
    )


class FakeClient:
    """Stands in for ReelsClient and records every call it receives."""

    def __init__(self, pages: Optional[List[FeedPage]] = None):
        self.pages = list(pages or [])
        self.calls = []
        self.gate: Optional[asyncio.Event] = None
        self.fetch_error: Optional[Exception] = None
        self.like_status = False
        self.like_status_error: Optional[Exception] = None
        self.like_result: Optional[LikeToggleResult] = None
        self.like_error: Optional[Exception] = None
        self.comments: List[Comment] = []
        self.comments_error: Optional[Exception] = None
        self.post_error: Optional[Exception] = None

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()

    async def fetch_page(self, limit, offset):
        self.calls.append(("fetch_page", limit, offset))
        await self._wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.pages.pop(0) if self.pages else FeedPage()

    async def get_like_status(self, video_id, session):
        self.calls.append(("get_like_status", video_id))
        if self.like_status_error is not None:
            raise self.like_status_error
        return self.like_status

    async def toggle_like(self, video_id, session):
        self.calls.append(("toggle_like", video_id))
        await self._wait()
        if self.like_error is not None:
            raise self.like_error
        return self.like_result

    async def list_comments(self, video_id):
        self.calls.append(("list_comments", video_id))
        if self.comments_error is not None:
            raise self.comments_error
        return list(self.comments)

    async def post_comment(self, video_id, text, session):
        self.calls.append(("post_comment", video_id, text))
        await self._wait()
        if self.post_error is not None:
            raise self.post_error
        return Comment(
            _id="c-new",
            videoId=video_id,
            text=text,
            userId=Author(_id=session.user_id, email=session.email),
        )


class FakeMedia:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.playing = False
        self.plays = 0
        self.pauses = 0

    async def play(self):
        self.plays += 1
        if self.error is not None:
            raise self.error
        self.playing = True

    def pause(self):
        self.pauses += 1
        self.playing = False


@pytest.fixture
def session():
    return Session(user_id="u1", email="viewer@example.com", token="tok")


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def notices():
    return []


@pytest.fixture
def context(client, session, notices):
    return FeedContext(client=client, session=session, gate=InteractionGate(), notify=notices.append)


@pytest.fixture
def anonymous(client, notices):
    return FeedContext(client=client, session=None, gate=InteractionGate(), notify=notices.append)
