"""User authentication, session management, admin gating and rate limiting."""
import os
import time
import secrets
from typing import Optional
from collections import defaultdict

import bcrypt
from fastapi import Header, HTTPException, Request

from db import get_db

# --- Config ---
SESSION_TTL = int(os.environ.get("READER_SESSION_TTL_DAYS", "30")) * 24 * 3600
ADMIN_USERNAMES = {
    u.strip() for u in os.environ.get("READER_ADMIN_USERS", "").split(",") if u.strip()
}

# --- Rate Limiting ---
RATE_LIMIT_REQUESTS = 30
RATE_LIMIT_WINDOW = 60
_rate_buckets: dict = defaultdict(list)
_rate_check_counter = 0


def rate_limit_check(ip: str) -> bool:
    now = time.time()
    cutoff = now - RATE_LIMIT_WINDOW
    _rate_buckets[ip] = [t for t in _rate_buckets[ip] if t > cutoff]
    if len(_rate_buckets[ip]) >= RATE_LIMIT_REQUESTS:
        return False
    _rate_buckets[ip].append(now)
    return True


def rate_limit_cleanup():
    global _rate_check_counter
    _rate_check_counter += 1
    if _rate_check_counter % 100 == 0:
        now = time.time()
        cutoff = now - RATE_LIMIT_WINDOW
        stale = [ip for ip, ts in _rate_buckets.items() if not ts or ts[-1] < cutoff]
        for ip in stale:
            del _rate_buckets[ip]


def get_rate_limit_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# --- Passwords & sessions ---

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), stored.encode())
    except ValueError:
        return False


def create_session(user_id: int) -> str:
    token = secrets.token_hex(32)
    now = time.time()
    conn = get_db()
    conn.execute("INSERT INTO sessions (user_id, token, created_at, expires_at) VALUES (?, ?, ?, ?)",
                 (user_id, token, now, now + SESSION_TTL))
    conn.commit()
    conn.close()
    return token


def get_user_from_token(token: Optional[str]) -> Optional[dict]:
    if not token:
        return None
    conn = get_db()
    row = conn.execute(
        "SELECT s.user_id, u.username, u.is_admin FROM sessions s JOIN users u ON s.user_id = u.id "
        "WHERE s.token = ? AND s.expires_at > ?",
        (token, time.time())
    ).fetchone()
    conn.close()
    if row:
        return {"id": row["user_id"], "username": row["username"], "is_admin": bool(row["is_admin"])}
    return None


def cleanup_expired_sessions() -> int:
    """Delete expired sessions from the database. Returns count of deleted rows."""
    conn = get_db()
    cursor = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (time.time(),))
    deleted = cursor.rowcount
    conn.commit()
    conn.close()
    return deleted


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    if authorization.startswith("Bearer "):
        return authorization[7:]
    return None


# --- FastAPI dependencies ---

async def require_user(authorization: Optional[str] = Header(default=None)) -> dict:
    """Resolve the bearer session or fail with 401."""
    user = get_user_from_token(extract_bearer_token(authorization))
    if not user:
        raise HTTPException(401, "Not logged in")
    return user


async def require_admin(authorization: Optional[str] = Header(default=None)) -> dict:
    user = get_user_from_token(extract_bearer_token(authorization))
    if not user:
        raise HTTPException(401, "Not logged in")
    if not user["is_admin"]:
        raise HTTPException(403, "Admin access required")
    return user
