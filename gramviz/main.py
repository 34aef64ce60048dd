from __future__ import annotations

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.logging_setup import configure_logging
from .core.settings import get_settings
from .routes.plot import router as plot_router

load_dotenv()

app = FastAPI(title="gramviz API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(plot_router)


@app.on_event("startup")
async def ensure_storage() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
