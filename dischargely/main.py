import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from dischargely.api.router import api_router
from dischargely.config import settings
from dischargely.core.database import init_db
from dischargely.services.container import build_services
from dischargely.services.scheduler import Scheduler


def setup_logging() -> None:
    """Configure application logging."""
    log_format = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    date_format = "%H:%M:%S"

    logging.basicConfig(
        level=logging.INFO,
        format=log_format,
        datefmt=date_format,
        stream=sys.stdout,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)

    # Requests are logged by the middleware below
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services and run the scheduler for the lifetime of the app."""
    setup_logging()
    logger.info("Dischargely API starting up")
    if settings.debug:
        await init_db()

    services = build_services(settings)
    app.state.services = services
    scheduler = Scheduler(services.rate_limiter)
    scheduler.start()
    yield
    scheduler.stop()
    logger.info("Dischargely API shutting down")


app = FastAPI(
    title="Dischargely API",
    description="Discharge summaries from clerking notes, with referral rewards",
    version="0.1.0",
    lifespan=lifespan,
)

# Trust X-Forwarded-* from the reverse proxy so client IPs and redirects are right
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log failed requests and the endpoints worth watching."""
    if request.method == "OPTIONS" or request.url.path == "/health":
        return await call_next(request)

    response = await call_next(request)

    path = request.url.path
    if response.status_code >= 400 or any(
        keyword in path for keyword in ["summaries", "webhooks", "send-otp", "checkout"]
    ):
        logger.info(f"{request.method} {path} -> {response.status_code}")

    return response


app.include_router(api_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
