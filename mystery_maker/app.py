from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mystery_maker import storage
from mystery_maker.config import get_settings
from mystery_maker.routes import router

load_dotenv(Path(__file__).parent.parent / ".env")


def create_app(data_dir: Path | None = None) -> FastAPI:
    resolved = data_dir or get_settings().data_dir
    storage.init_storage(resolved)

    app = FastAPI(title="Mystery Maker")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
