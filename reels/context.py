import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

from .client import ReelsClient
from .models import Session
from .playback import InteractionGate

logger = logging.getLogger(__name__)

ShareFn = Callable[[Dict[str, str]], Awaitable[None]]


@dataclass
class Notice:
    """A toast-level message for the viewer."""

    title: str
    description: str = ""
    variant: str = "default"


def log_notice(notice: Notice) -> None:
    level = logging.WARNING if notice.variant == "destructive" else logging.INFO
    logger.log(level, "%s: %s", notice.title, notice.description)


def log_link(url: str) -> None:
    logger.info("Link: %s", url)


@dataclass
class FeedContext:
    """Everything the feed reads from its surroundings, handed in at construction.

    ``share`` is the platform share sheet when one exists; without it links
    go to ``copy_link``.
    """

    client: ReelsClient
    session: Optional[Session] = None
    gate: InteractionGate = field(default_factory=InteractionGate)
    notify: Callable[[Notice], None] = log_notice
    share: Optional[ShareFn] = None
    copy_link: Callable[[str], None] = log_link
