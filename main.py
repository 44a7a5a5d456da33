"""
Spell Interaction Engine — FastAPI Server (Port 8002)
=======================================================
Spell-pair interaction prediction: rule-based scoring, prioritized plugins,
memoized analyses, a bounded outcome corpus, and a confidence-gated learned
ensemble trained as a background job.

Run:
  uvicorn main:app --host 0.0.0.0 --port 8002 --reload
  # or
  python main.py
"""

import logging
import os
from contextlib import asynccontextmanager

# Load .env file BEFORE anything reads os.getenv()
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from spellweave.config import settings  # noqa: E402

# ── Logging ──
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("spellweave")


# ── Lifespan: build the engine once ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    from spellweave.api.v1.interactions import get_orchestrator

    engine = get_orchestrator()
    logger.info(
        f"Engine warmed up: {len(engine.registry)} plugin(s), "
        f"corpus bound {engine.corpus.max_size}"
    )

    yield

    engine.cancel_training()
    logger.info("Shutting down Spell Interaction Engine")


# ── Create FastAPI app ──
app = FastAPI(
    title="Spell Interaction Engine",
    description=(
        "Predicts how two spells cast together interact: deterministic rule "
        "scoring, prioritized plugins, memoized analyses, bounded training "
        "corpus with CSV/JSON export, and a confidence-gated learned ensemble."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ──
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Mount all API routes ──
from spellweave.api.router import api_router  # noqa: E402
app.include_router(api_router, prefix="/api/v1")


# ── Root ──
@app.get("/", tags=["Root"])
async def root():
    return {
        "service": "Spell Interaction Engine",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "interactions": "/api/v1/interactions/ (17 endpoints)",
        },
        "health": "/api/v1/interactions/health",
    }


# ── Direct run ──
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=os.getenv("RELOAD", "true").lower() == "true",
        log_level="info",
    )
