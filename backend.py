"""Arabic Reader application entry point.

Run with:  uvicorn backend:app --port 8848
"""
import os
import time
from collections import deque
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from log import get_logger
from db import init_db
from auth import cleanup_expired_sessions
from routes import router

logger = get_logger("reader.backend")

LATENCY_WINDOW = 500
_latencies: deque = deque(maxlen=LATENCY_WINDOW)


def get_latency_stats() -> dict:
    if not _latencies:
        return {"samples": 0, "avg_ms": None, "p95_ms": None}
    ordered = sorted(_latencies)
    p95 = ordered[min(len(ordered) - 1, int(len(ordered) * 0.95))]
    return {
        "samples": len(ordered),
        "avg_ms": round(sum(ordered) / len(ordered), 1),
        "p95_ms": round(p95, 1),
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    removed = cleanup_expired_sessions()
    logger.info("Arabic Reader started", extra={"component": "startup", "count": removed})
    yield


app = FastAPI(title="Arabic Reader", lifespan=lifespan)


@app.middleware("http")
async def track_latency(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000
    if request.url.path.startswith("/api/"):
        _latencies.append(duration_ms)
        if response.status_code >= 500:
            logger.warning("Request failed", extra={
                "component": "http", "endpoint": request.url.path,
                "status_code": response.status_code, "duration_ms": round(duration_ms, 1),
            })
    return response


app.include_router(router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("READER_PORT", "8848")))
