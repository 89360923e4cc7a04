from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import events, health
from .config import settings
from .logging_config import setup_logging
from .services.runtime import shutdown_runtime

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let running transfers report their outcome before shutting down
    await shutdown_runtime()


# Create FastAPI app
app = FastAPI(
    title="Refuel API",
    description="Conversational gas refuel and native transfer bot",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(events.router, tags=["Conversation"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Refuel API",
        "version": "0.1.0",
        "description": "Conversational gas refuel and native transfer bot",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "refuel.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
