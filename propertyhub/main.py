# ---------------------------------------------------------
# propertyhub/main.py
# PropertyHub - Real-estate listing backend
#
# Run: uvicorn propertyhub.main:app --reload (from repo root)
#
# - FastAPI + SQLite + Redis read-through cache
# - /api/auth             : register, login, current user
# - /api/users            : profile
# - /api/properties       : listing search, text search, CRUD
# - /api/favorites        : per-user favorites
# - /api/recommendations  : user-to-user recommendations
# ---------------------------------------------------------

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from propertyhub.cache import CacheClient
from propertyhub.config import CORS_ORIGINS, IS_PROD
from propertyhub.db import init_db, now_iso
from propertyhub.errors import register_error_handlers
from propertyhub.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from propertyhub.routes_auth import router as auth_router
from propertyhub.routes_favorites import router as favorites_router
from propertyhub.routes_properties import router as properties_router
from propertyhub.routes_recommendations import router as recommendations_router
from propertyhub.routes_users import router as users_router

_STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    cache = CacheClient()
    cache.connect()
    app.state.cache = cache
    print("[STARTUP] PropertyHub backend ready")
    try:
        yield
    finally:
        cache.close()
        app.state.cache = None
        print("[SHUTDOWN] PropertyHub backend stopped")


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="PropertyHub Backend", version="0.1", lifespan=lifespan)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(properties_router)
app.include_router(favorites_router)
app.include_router(recommendations_router)


@app.get("/health")
def health() -> Dict[str, Any]:
    return {
        "status": "OK",
        "timestamp": now_iso(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
    }
