import httpx
import logging
import pydantic
from typing import Any, Dict, List, Optional, Type, TypeVar
from .config import get_settings
from .errors import NetworkOrServerError, NotFoundError, UnauthorizedError, ValidationError
from .models import Comment, FeedPage, LikeStatus, LikeToggleResult, Session, UserProfile, VideoRecord

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)


class ReelsClient:
    """Async JSON-over-HTTP access to the reels API.

    Calls that act on behalf of a viewer take the session explicitly; calls
    that require one raise ``UnauthorizedError`` without touching the network
    when it is missing. A success response whose body does not match the
    expected shape is reported as ``NetworkOrServerError``.
    """

    def __init__(self, base_url: str = "", timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        s = get_settings()
        self.base = (base_url or s.api_base_url).rstrip('/')
        self.timeout = timeout if timeout is not None else s.request_timeout
        self.transport = transport

    async def _send(self, method: str, path: str, session: Optional[Session] = None,
                    **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {session.token}"} if session else {}
        url = f"{self.base}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkOrServerError(f"{method} {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise self._error_for(resp)
        return resp

    async def _request(self, method: str, path: str, session: Optional[Session] = None,
                       **kwargs: Any) -> Any:
        resp = await self._send(method, path, session=session, **kwargs)
        try:
            return resp.json()
        except ValueError as exc:
            raise NetworkOrServerError(f"{method} {path} returned invalid JSON",
                                       resp.status_code) from exc

    async def _fetch(self, model: Type[M], method: str, path: str,
                     session: Optional[Session] = None, **kwargs: Any) -> M:
        resp = await self._send(method, path, session=session, **kwargs)
        try:
            return model.model_validate_json(resp.content)
        except pydantic.ValidationError as exc:
            logger.warning("%s %s returned an unexpected body: %s", method, path, exc)
            raise NetworkOrServerError(f"{method} {path} returned an unexpected body",
                                       resp.status_code) from exc

    async def _fetch_list(self, model: Type[M], method: str, path: str,
                          session: Optional[Session] = None, **kwargs: Any) -> List[M]:
        resp = await self._send(method, path, session=session, **kwargs)
        try:
            return pydantic.TypeAdapter(List[model]).validate_json(resp.content)
        except pydantic.ValidationError as exc:
            logger.warning("%s %s returned an unexpected body: %s", method, path, exc)
            raise NetworkOrServerError(f"{method} {path} returned an unexpected body",
                                       resp.status_code) from exc

    @staticmethod
    def _error_for(resp: httpx.Response) -> Exception:
        try:
            body = resp.json()
        except ValueError:
            body = None
        detail = (body.get("detail") or body.get("error")) if isinstance(body, dict) else None
        message = str(detail or resp.reason_phrase or "Request failed")
        if resp.status_code in (401, 403):
            return UnauthorizedError(message)
        if resp.status_code == 404:
            return NotFoundError(message)
        if resp.status_code in (400, 422):
            return ValidationError(message)
        return NetworkOrServerError(message, resp.status_code)

    @staticmethod
    def _require(session: Optional[Session]) -> Session:
        if session is None:
            raise UnauthorizedError("Login required")
        return session

    async def fetch_page(self, limit: int, offset: int) -> FeedPage:
        return await self._fetch(FeedPage, "GET", "/videos", params={"limit": limit, "offset": offset})

    async def get_video(self, video_id: str) -> VideoRecord:
        return await self._fetch(VideoRecord, "GET", f"/videos/{video_id}")

    async def get_like_status(self, video_id: str, session: Optional[Session]) -> bool:
        if session is None:
            return False
        status = await self._fetch(LikeStatus, "GET", f"/videos/{video_id}/like", session=session)
        return status.liked

    async def toggle_like(self, video_id: str, session: Optional[Session]) -> LikeToggleResult:
        session = self._require(session)
        return await self._fetch(LikeToggleResult, "POST", f"/videos/{video_id}/like", session=session)

    async def list_comments(self, video_id: str) -> List[Comment]:
        return await self._fetch_list(Comment, "GET", f"/videos/{video_id}/comments")

    async def post_comment(self, video_id: str, text: str, session: Optional[Session]) -> Comment:
        session = self._require(session)
        return await self._fetch(Comment, "POST", f"/videos/{video_id}/comments", session=session,
                                 json={"text": text})

    async def create_video(self, payload: Dict[str, Any], session: Optional[Session]) -> VideoRecord:
        session = self._require(session)
        return await self._fetch(VideoRecord, "POST", "/videos", session=session, json=payload)

    async def get_profile(self, user_id: str) -> UserProfile:
        return await self._fetch(UserProfile, "GET", f"/users/{user_id}")

    async def register(self, email: str, password: str, username: Optional[str] = None) -> Dict[str, Any]:
        body = {"email": email, "password": password, "username": username}
        return await self._request("POST", "/auth/register", json=body)

    async def verify_email(self, token: str) -> Dict[str, Any]:
        return await self._request("POST", "/auth/verify-email", json={"token": token})

    async def login(self, email: str, password: str) -> Session:
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        try:
            user = data["user"]
            return Session(user_id=user["_id"], email=user["email"], token=data["token"])
        except (KeyError, TypeError, pydantic.ValidationError) as exc:
            raise NetworkOrServerError("POST /auth/login returned an unexpected body") from exc
