from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel
from functools import lru_cache
from typing import List, Optional, Tuple
import logging
import re

from .auth import (
    current_user,
    current_user_optional,
    hash_password,
    is_expired,
    issue_session,
    new_token,
    public_user,
    verification_expiry,
    verify_password,
)
from .config import get_settings
from .logging_utils import configure_logging
from .mailer import EmailSender
from .models import CommentCreate, Transformation, VideoCreate, utcnow
from .storage import DocumentStore, get_store

settings = get_settings()
logger = logging.getLogger(__name__)

app = FastAPI(title="Reels API", version="0.3.0")

USERNAME_RE = re.compile(r"^[a-z0-9_]+$")
AUTHOR_FIELDS = ("_id", "email", "username", "displayName", "avatar")


@lru_cache(maxsize=1)
def get_mailer() -> EmailSender:
    return EmailSender(settings.public_base_url)


class RegisterRequest(BaseModel):
    email: str = ""
    password: str = ""
    username: Optional[str] = None
    displayName: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class VerifyRequest(BaseModel):
    token: str = ""


@app.on_event("startup")
async def on_startup():
    configure_logging(settings)
    store = get_store()
    logger.info(
        "Loaded %d videos, %d users, %d comments",
        store.count("videos"),
        store.count("users"),
        store.count("comments"),
    )


def populate_author(store: DocumentStore, author_id: Optional[str]) -> Optional[dict]:
    user = store.get("users", author_id) if author_id else None
    if not user:
        return None
    return {k: user.get(k) for k in AUTHOR_FIELDS}


def video_out(store: DocumentStore, doc: dict) -> dict:
    author = populate_author(store, doc.get("author"))
    return {**doc, "author": author or doc.get("author")}


def comment_out(store: DocumentStore, doc: dict) -> dict:
    return {**doc, "userId": populate_author(store, doc.get("userId"))}


def newest_first(docs: List[dict]) -> List[dict]:
    # Insertion order breaks ties between equal timestamps.
    ranked = sorted(enumerate(docs), key=lambda p: (p[1].get("createdAt") or "", p[0]), reverse=True)
    return [doc for _, doc in ranked]


def paginate(items: List[dict], offset: int, limit: int) -> Tuple[List[dict], int]:
    total = len(items)
    return items[offset:offset + limit], total


def require_video(store: DocumentStore, video_id: str) -> dict:
    video = store.get("videos", video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return video


@app.get("/health")
async def health(store: DocumentStore = Depends(get_store)):
    return {
        "status": "ok",
        "videos": store.count("videos"),
        "users": store.count("users"),
        "comments": store.count("comments"),
    }


@app.get("/videos")
async def list_videos(
    limit: int = Query(default=settings.page_size_default, ge=1, le=settings.page_size_max),
    offset: int = Query(default=0, ge=0),
    store: DocumentStore = Depends(get_store),
):
    page, total = paginate(newest_first(store.all("videos")), offset, limit)
    return {
        "videos": [video_out(store, v) for v in page],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + len(page) < total,
        },
    }


@app.post("/videos", status_code=201)
async def create_video(
    payload: VideoCreate,
    user: dict = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    doc = store.insert("videos", {
        "title": payload.title,
        "description": payload.description,
        "videoUrl": payload.video_url,
        "thumbnailUrl": payload.thumbnail_url,
        "duration": payload.duration,
        "aspectRatio": payload.aspect_ratio,
        "controls": payload.controls,
        "transformation": Transformation(quality=payload.quality).model_dump(),
        "likes": 0,
        "likedBy": [],
        "shares": 0,
        "author": user["_id"],
        "createdAt": utcnow().isoformat(),
    })
    logger.info("User %s published video %s", user["_id"], doc["_id"])
    return video_out(store, doc)


@app.get("/videos/{video_id}")
async def get_video(video_id: str, store: DocumentStore = Depends(get_store)):
    return video_out(store, require_video(store, video_id))


@app.delete("/videos/{video_id}")
async def delete_video(
    video_id: str,
    user: dict = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    video = require_video(store, video_id)
    if video.get("author") != user["_id"]:
        raise HTTPException(status_code=403, detail="Only the author can delete a video")
    store.delete("videos", video_id)
    for comment in list(store.find("comments", videoId=video_id)):
        store.delete("comments", comment["_id"])
    return {"deleted": True}


@app.get("/videos/{video_id}/like")
async def like_status(
    video_id: str,
    user: Optional[dict] = Depends(current_user_optional),
    store: DocumentStore = Depends(get_store),
):
    if user is None:
        return {"liked": False}
    video = require_video(store, video_id)
    return {"liked": user["_id"] in (video.get("likedBy") or [])}


@app.post("/videos/{video_id}/like")
async def toggle_like(
    video_id: str,
    user: dict = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    video = require_video(store, video_id)
    liked_by = list(video.get("likedBy") or [])
    if user["_id"] in liked_by:
        liked_by.remove(user["_id"])
        video["likes"] = max(0, (video.get("likes") or 0) - 1)
        liked = False
    else:
        liked_by.append(user["_id"])
        video["likes"] = (video.get("likes") or 0) + 1
        liked = True
    video["likedBy"] = liked_by
    store.save("videos", video)
    return {"liked": liked, "likes": video["likes"]}


@app.get("/videos/{video_id}/comments")
async def list_comments(video_id: str, store: DocumentStore = Depends(get_store)):
    require_video(store, video_id)
    comments = newest_first(list(store.find("comments", videoId=video_id)))
    return [comment_out(store, c) for c in comments]


@app.post("/videos/{video_id}/comments", status_code=201)
async def create_comment(
    video_id: str,
    payload: CommentCreate,
    user: dict = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    require_video(store, video_id)
    text = (payload.text or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Comment text is required")
    if len(text) > settings.comment_max_length:
        raise HTTPException(
            status_code=400,
            detail=f"Comment must be at most {settings.comment_max_length} characters",
        )
    doc = store.insert("comments", {
        "videoId": video_id,
        "userId": user["_id"],
        "text": text,
        "createdAt": utcnow().isoformat(),
    })
    return comment_out(store, doc)


@app.get("/users/{user_id}")
async def get_profile(user_id: str, store: DocumentStore = Depends(get_store)):
    # Profiles resolve by id first, then by username.
    user = store.get("users", user_id) or store.find_one("users", username=user_id.lower())
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    videos = newest_first(list(store.find("videos", author=user["_id"])))
    return {
        **public_user(user),
        "videos": [video_out(store, v) for v in videos],
        "stats": {
            "videos": len(videos),
            "followers": len(user.get("followers") or []),
            "following": len(user.get("following") or []),
        },
    }


@app.post("/auth/register", status_code=201)
async def register(
    payload: RegisterRequest,
    store: DocumentStore = Depends(get_store),
    mailer: EmailSender = Depends(get_mailer),
):
    email = payload.email.strip().lower()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    username = payload.username.strip().lower() if payload.username else None
    if username is not None and not USERNAME_RE.match(username):
        raise HTTPException(
            status_code=400,
            detail="Username can only contain lowercase letters, numbers, and underscores",
        )
    if store.find_one("users", email=email):
        raise HTTPException(status_code=409, detail="Email already exists")
    if username and store.find_one("users", username=username):
        raise HTTPException(status_code=409, detail="Username already exists")

    token = new_token()
    user = store.insert("users", {
        "email": email,
        "password": hash_password(payload.password),
        "username": username,
        "displayName": payload.displayName,
        "avatar": None,
        "bio": None,
        "followers": [],
        "following": [],
        "emailVerified": False,
        "verificationToken": token,
        "verificationTokenExpiry": verification_expiry().isoformat(),
        "createdAt": utcnow().isoformat(),
    })
    try:
        mailer.send_verification(email, token)
    except OSError:
        # Registration stands even when mail delivery is down.
        logger.exception("Failed to send verification email to %s", email)
    logger.info("Registered user %s", user["_id"])
    return {
        "message": "User registered successfully. Please check your email to verify your account.",
        "requiresVerification": True,
    }


def _verify(token: str, store: DocumentStore) -> dict:
    if not token:
        raise HTTPException(status_code=400, detail="Verification token is required")
    user = store.find_one("users", verificationToken=token)
    if not user or is_expired(user.get("verificationTokenExpiry")):
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")
    user["emailVerified"] = True
    user["verificationToken"] = None
    user["verificationTokenExpiry"] = None
    store.save("users", user)
    return {"message": "Email verified successfully"}


@app.get("/auth/verify-email")
async def verify_email(token: str = Query(default=""), store: DocumentStore = Depends(get_store)):
    return _verify(token, store)


@app.post("/auth/verify-email")
async def verify_email_post(payload: VerifyRequest, store: DocumentStore = Depends(get_store)):
    return _verify(payload.token, store)


@app.post("/auth/login")
async def login(payload: LoginRequest, store: DocumentStore = Depends(get_store)):
    email = payload.email.strip().lower()
    if not email or not payload.password:
        raise HTTPException(status_code=400, detail="Missing email or password")
    user = store.find_one("users", email=email)
    if not user:
        raise HTTPException(status_code=401, detail="No user found")
    if not user.get("emailVerified"):
        raise HTTPException(status_code=403, detail="Please verify your email before logging in")
    if not verify_password(payload.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid password")
    token = issue_session(store, user)
    return {"token": token, "user": public_user(user)}


@app.post("/auth/logout")
async def logout(user: dict = Depends(current_user), store: DocumentStore = Depends(get_store)):
    for session in list(store.find("sessions", userId=user["_id"])):
        store.delete("sessions", session["_id"])
    return {"loggedOut": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("reels.main:app", host="0.0.0.0", port=8000, reload=True)
