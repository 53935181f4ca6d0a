import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteRuleRepo
from src.api.deps import get_hook_registry, get_settings, register_hooks, reset_shared_state
from src.rules.loader import load_rules, seed_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Schema and seed rules must be in place before the first request (fail-fast)
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    SQLiteMigrator(settings.db_path, settings.migrations_dir).run_migrations()

    repo = SQLiteRuleRepo(settings.db_path)
    if settings.rules_path is not None and not repo.list_all():
        seed_rules(repo, load_rules(settings.rules_path))
        logger.info("Rules loaded from %s", settings.rules_path)

    register_hooks(get_hook_registry(), settings)

    logger.info(
        "Nice URLs enabled=%s caching=%s inversion=%s base_url=%s hooks=%d",
        settings.config.enabled,
        settings.config.caching,
        settings.config.inversion,
        settings.base_url,
        len(get_hook_registry().names()),
    )

    yield

    reset_shared_state()


app = FastAPI(
    title="Nice URL Router",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from src.api.routes import admin_rules, public_routes  # noqa: E402

app.include_router(admin_rules.router, prefix="/api/admin", tags=["Admin Rules"])
app.include_router(public_routes.router, prefix="", tags=["Nice URLs"])


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "nice-urls"}
