"""
FastAPI Application - Main entry point.
Enqueue batches, inspect their progress, and run single probes.
"""

from contextlib import asynccontextmanager
from functools import partial

import uvicorn
from fastapi import FastAPI

from ..core.config import Settings, load_settings
from ..core.guardrails import Guardrails
from ..browser.manager import create_browser_session
from ..llm.provider import LLMProvider, get_llm_provider
from ..memory.artifacts import ArtifactStore
from ..memory.store import BatchStore
from ..probe.engine import ProbeEngine, SessionFactory
from ..probe.judgment import JudgmentClient
from ..scheduler.batch import BatchScheduler

from .routes import batches, probes, scheduler


def create_app(
    settings: Settings | None = None,
    llm: LLMProvider | None = None,
    session_factory: SessionFactory | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings, loaded from the environment if omitted
        llm: LLM provider, built from settings if omitted
        session_factory: Browser session factory, Playwright-backed if omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.
        Builds every component once, recovers orphaned items, starts polling.
        """
        print("[startup] Initializing batch store...")
        store = BatchStore(settings.database_path)
        await store.initialize()

        provider = llm or get_llm_provider(settings)
        guardrails = Guardrails()
        engine = ProbeEngine(
            settings=settings,
            judgment=JudgmentClient(provider, store),
            session_factory=session_factory or partial(create_browser_session, settings, provider),
            artifacts=ArtifactStore(settings.artifacts_dir),
        )
        batch_scheduler = BatchScheduler(settings, store, engine.run, guardrails)

        app.state.settings = settings
        app.state.store = store
        app.state.engine = engine
        app.state.guardrails = guardrails
        app.state.scheduler = batch_scheduler

        await batch_scheduler.recover()
        if settings.scheduler_autostart:
            await batch_scheduler.start()

        print(f"[startup] SearchProbe API ready (LLM: {provider.model_name}, browser: {settings.browser_mode})")

        yield

        print("[shutdown] Shutting down...")
        await batch_scheduler.stop()
        await store.close()

    app = FastAPI(
        title="SearchProbe",
        description=(
            "Adversarial probing of e-commerce site search with natural-language "
            "queries of escalating difficulty"
        ),
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.include_router(batches.router, prefix="/api/batches", tags=["Batches"])
    app.include_router(probes.router, prefix="/api/probes", tags=["Probes"])
    app.include_router(scheduler.router, prefix="/api/scheduler", tags=["Scheduler"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        store = getattr(app.state, "store", None)
        batch_scheduler = getattr(app.state, "scheduler", None)
        return {
            "status": "healthy",
            "database": "connected" if store and store.db else "disconnected",
            "scheduler": "running" if batch_scheduler and batch_scheduler.running else "stopped",
        }

    return app


def main() -> None:
    """Run the API server."""
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
