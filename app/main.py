import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from app.core.config import settings
from app.core.errors import register_error_handlers
from app.core.logging import setup_logging
from app.db.session import close_db, init_db
from app.routes import auth, questions, quiz, teams, websocket

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_db()
    logger.info(f"Treasure hunt API started (bonus every {settings.BONUS_MILESTONE} questions)")
    yield
    await close_db()

app = FastAPI(title="Treasure Hunt API", lifespan=lifespan)

# Browsers reject "*" together with credentials
allow_credentials = settings.CORS_ORIGINS != ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(quiz.router, prefix="/api", tags=["quiz"])
app.include_router(questions.router, prefix="/api", tags=["questions"])
app.include_router(teams.router, prefix="/api", tags=["teams"])
app.include_router(websocket.router, tags=["websocket"])

os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

@app.get("/health")
async def health():
    return {"success": True, "status": "ok"}
