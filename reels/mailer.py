import logging
from typing import Callable, Optional
from urllib.parse import urlencode

from .config import get_settings

logger = logging.getLogger(__name__)


def verification_url(token: str, base_url: str = "") -> str:
    base = (base_url or get_settings().public_base_url).rstrip("/")
    return f"{base}/verify-email?{urlencode({'token': token})}"


def log_delivery(email: str, url: str) -> None:
    logger.info("Verification email for %s: %s", email, url)


class EmailSender:
    """Hands verification mail to the delivery service.

    ``deliver`` receives the recipient and the verification link. The default
    only logs the link so a local setup can follow it; a real transport may
    raise ``OSError`` when the mail server is unreachable.
    """

    def __init__(self, base_url: str = "", deliver: Optional[Callable[[str, str], None]] = None):
        self.base_url = base_url
        self.deliver = deliver or log_delivery

    def send_verification(self, email: str, token: str) -> str:
        url = verification_url(token, self.base_url)
        self.deliver(email, url)
        return url
