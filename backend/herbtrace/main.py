import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from herbtrace.config import settings
from herbtrace.database import create_tables, engine
from herbtrace.middleware.exceptions import register_exception_handlers
from herbtrace.routers import (
    analytics,
    certificates,
    harvests,
    health,
    lab,
    lots,
    manager,
    processing,
    provenance,
    workflow,
)
from herbtrace.services.notifications import close_notifier

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("herbtrace")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        logger.info("Creating missing tables")
        await create_tables()
    yield
    await close_notifier()
    await engine.dispose()


app = FastAPI(
    title="HerbTrace",
    description="Herb supply-chain traceability: harvest, lab, processing and approval",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
# Public
app.include_router(health.router)
app.include_router(provenance.router, prefix="/api/provenance", tags=["provenance"])

# Role-scoped (bearer token required)
app.include_router(harvests.router, prefix="/api/harvests", tags=["harvests"])
app.include_router(lab.router, prefix="/api/lab", tags=["lab"])
app.include_router(processing.router, prefix="/api/processing", tags=["processing"])
app.include_router(manager.router, prefix="/api/manager", tags=["manager"])
app.include_router(certificates.router, prefix="/api/certificates", tags=["certificates"])
app.include_router(lots.router, prefix="/api/lots", tags=["lots"])
app.include_router(workflow.router, prefix="/api/workflow", tags=["workflow"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])
