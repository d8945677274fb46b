"""FastAPI application entry point."""
from fastapi import FastAPI

from exercise_engine.routers import exercises, presets


app = FastAPI(title="Exercise Engine API")


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Simple health probe for liveness checks."""
    return {"status": "ok"}


# Include routers
app.include_router(exercises.router)
app.include_router(presets.router)
