import asyncio
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)
from app.domains.cases.router import router as cases_router
from app.domains.notifications.realtime import RealtimeHub, relay_published_events
from app.domains.notifications.router import router as realtime_router
from app.domains.records.router import router as records_router
from app.domains.users.router import router as users_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    relay = asyncio.create_task(relay_published_events(app.state.realtime_hub))
    try:
        yield
    finally:
        relay.cancel()
        try:
            await relay
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
)
app.state.realtime_hub = RealtimeHub()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Domain routers
app.include_router(
    cases_router,
    prefix=f"{settings.API_V1_PREFIX}/cases",
    tags=["cases"],
)
app.include_router(
    records_router,
    prefix=f"{settings.API_V1_PREFIX}/records",
    tags=["records"],
)
app.include_router(
    users_router,
    prefix=f"{settings.API_V1_PREFIX}/users",
    tags=["users"],
)
app.include_router(
    realtime_router,
    prefix=f"{settings.API_V1_PREFIX}/realtime",
    tags=["realtime"],
)
