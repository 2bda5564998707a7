# supportdesk/main.py
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from supportdesk import config
from supportdesk.db import db, ensure_indexes
from supportdesk.errors import register_error_handlers
from supportdesk.realtime import sio
from supportdesk.routers import auth, licenses, notifications, replies, tickets, users

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await ensure_indexes(db)
    except Exception as e:
        logger.error(f"MongoDB index setup failed: {e}")
    logger.info("Tashkhees Support Portal API started, email %s",
                "configured" if config.email_configured() else "not configured")
    yield


# -------------------------
# Initialize FastAPI App
# -------------------------
app = FastAPI(title="Tashkhees Support Portal API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# -------------------------
# Root Route
# -------------------------
@app.get("/")
def read_root():
    return {"message": "Welcome to the Tashkhees Support Portal API!"}


@app.get("/api/health")
def health():
    return {
        "success": True,
        "message": "Tashkhees Support Portal API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "features": {
            "socketIO": True,
            "notifications": True,
            "email": config.email_configured(),
        },
    }

# -------------------------
# Include Routers
# -------------------------
for router in (auth.router, tickets.router, replies.router, notifications.router, users.router, licenses.router):
    app.include_router(router, prefix="/api")

# -------------------------
# Uploaded attachments
# -------------------------
os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")

# REST + Socket.IO on one ASGI app: uvicorn supportdesk.main:asgi_app
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(asgi_app, host="0.0.0.0", port=config.PORT)
