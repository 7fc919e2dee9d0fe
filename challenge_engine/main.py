# FastAPI entry point exposing the challenge selection engine
# challenge_engine/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from challenge_engine.endpoints import challenges as challenges_router
from challenge_engine.models.tables import Base
from challenge_engine.services.challenge_catalog import load_challenges, seed_challenges
from challenge_engine.utils.config import settings
from challenge_engine.utils.db import engine
from challenge_engine.utils.logger import logger

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    logger.info("Challenge Engine API starting up...")

    # Create database tables if they don't exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.challenge_seed_csv:
        logger.info(f"Seeding challenge catalog from {settings.challenge_seed_csv}...")
        try:
            await seed_challenges(load_challenges(settings.challenge_seed_csv))
        except FileNotFoundError:
            logger.error(f"Challenge seed CSV not found at: {settings.challenge_seed_csv}")

    logger.info(f"Startup complete. Daily selections use the {settings.selection_timezone} calendar day.")
    yield
    logger.info("Challenge Engine API shutting down...")
    await engine.dispose()

# --- FastAPI App Initialization ---
app = FastAPI(
    title="Adaptive Challenge Engine API",
    description="Selects, recommends and reports on adaptive critical-thinking challenges.",
    version="1.0.0",
    lifespan=lifespan
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this to your frontend's domain
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- API Routers ---
app.include_router(challenges_router.router)

# --- Root Endpoint ---
@app.get("/")
async def root():
    return {"message": "Welcome to the Adaptive Challenge Engine API"}
