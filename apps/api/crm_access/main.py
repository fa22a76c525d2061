import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from crm_access.api.routes import router as api_router
from crm_access.core.config import get_settings
from crm_access.logging import configure_logging
from crm_access.middleware.correlation_id import CorrelationIdMiddleware
from crm_access.middleware.rate_limit import RestrictionMutationRateLimitMiddleware
from crm_access.middleware.request_logging import RequestLoggingMiddleware
from crm_access.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("crm_access.lifecycle")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("system.started")
    yield


app = FastAPI(title="CRM Access API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RestrictionMutationRateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

settings = get_settings()
if settings.otel_enabled:
    setup_otel("access-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
