import uvicorn
from app.core.config import settings
from app.main import app  # noqa: F401

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8002,
        reload=True,
        workers=1,
        log_level=settings.LOG_LEVEL.lower(),
    )
