"""API route handlers for Arabic Reader."""
import re
import time
from typing import Optional

from fastapi import APIRouter, Header, HTTPException

from log import get_logger

logger = get_logger("reader.routes")

from models import AuthRequest
from db import get_db
import auth
from auth import (
    hash_password, verify_password,
    create_session, get_user_from_token, extract_bearer_token,
)
from cache import cache_stats
from llm import get_openrouter_config

from catalog_routes import router as catalog_router
from admin_routes import router as admin_router
from progress_routes import router as progress_router
from study_routes import router as study_router
from extract_routes import router as extract_router

router = APIRouter()
router.include_router(catalog_router)
router.include_router(admin_router)
router.include_router(progress_router)
router.include_router(study_router)
router.include_router(extract_router)

USERNAME_RE = re.compile(r'^[a-zA-Z0-9_-]+$')


@router.get("/api/health", tags=["System"], summary="Health check with stats")
async def health_check():
    db_ok = True
    try:
        conn = get_db()
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()
    except Exception:
        logger.exception("Database health check failed", extra={"component": "health"})
        db_ok = False

    from backend import get_latency_stats
    return {
        "status": "ok" if db_ok else "degraded",
        "database": {"reachable": db_ok},
        "openrouter": {"configured": bool(get_openrouter_config().get("api_key"))},
        "cache": cache_stats(),
        "latency": get_latency_stats(),
    }


# --- Auth Routes ---

def _sync_admin_flag(conn, user_id: int, username: str) -> bool:
    """Users listed in READER_ADMIN_USERS are promoted on register/login."""
    if username not in auth.ADMIN_USERNAMES:
        row = conn.execute("SELECT is_admin FROM users WHERE id = ?", (user_id,)).fetchone()
        return bool(row["is_admin"])
    conn.execute("UPDATE users SET is_admin = 1 WHERE id = ?", (user_id,))
    conn.commit()
    return True


@router.post("/api/auth/register", tags=["Auth"], summary="Register a new user")
async def auth_register(req: AuthRequest):
    username = req.username.strip()
    password = req.password
    if not username or len(username) < 2 or len(username) > 30:
        raise HTTPException(400, "Username must be 2-30 characters")
    if not USERNAME_RE.match(username):
        raise HTTPException(400, "Username can only contain letters, numbers, hyphens, underscores")
    if not password or len(password) < 4:
        raise HTTPException(400, "Password must be at least 4 characters")

    conn = get_db()
    try:
        existing = conn.execute("SELECT id FROM users WHERE username = ?", (username,)).fetchone()
        if existing:
            raise HTTPException(409, "Username already taken")

        cursor = conn.execute("INSERT INTO users (username, password_hash, created_at) VALUES (?, ?, ?)",
                              (username, hash_password(password), time.time()))
        user_id = cursor.lastrowid
        conn.commit()
        is_admin = _sync_admin_flag(conn, user_id, username)
    finally:
        conn.close()

    logger.info("User registered", extra={"component": "auth", "user_id": user_id})
    token = create_session(user_id)
    return {"token": token, "username": username, "is_admin": is_admin}


@router.post("/api/auth/login", tags=["Auth"], summary="Log in and get a session token")
async def auth_login(req: AuthRequest):
    username = req.username.strip()
    conn = get_db()
    try:
        row = conn.execute("SELECT id, password_hash FROM users WHERE username = ?", (username,)).fetchone()
        if not row or not verify_password(req.password, row["password_hash"]):
            raise HTTPException(401, "Invalid username or password")
        is_admin = _sync_admin_flag(conn, row["id"], username)
    finally:
        conn.close()

    token = create_session(row["id"])
    return {"token": token, "username": username, "is_admin": is_admin}


@router.post("/api/auth/logout", tags=["Auth"], summary="Log out and invalidate token")
async def auth_logout(authorization: Optional[str] = Header(default=None)):
    token = extract_bearer_token(authorization)
    if token:
        conn = get_db()
        conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
        conn.commit()
        conn.close()
    return {"ok": True}


@router.get("/api/auth/me", tags=["Auth"], summary="Get current user info")
async def auth_me(authorization: Optional[str] = Header(default=None)):
    token = extract_bearer_token(authorization)
    user = get_user_from_token(token)
    if not user:
        raise HTTPException(401, "Not logged in")
    return {"username": user["username"], "is_admin": user["is_admin"]}
