import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rmadesk.core.config import settings
from rmadesk.routers import klaviyo, rma_cases, serials, shopify_webhooks
from rmadesk.services.errors import RmaError

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "RMA", "description": "Open, track and close return merchandise authorizations."},
    {"name": "Serials", "description": "Serial number registry and service history."},
    {"name": "Klaviyo", "description": "Push customer emails into Klaviyo."},
    {"name": "Webhooks", "description": "Inbound webhooks from Shopify."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "RMA service desk API. Intake returns from Shopify, the customer form and "
        "staff; track logistics, warranty and technician work; and keep a service "
        "history per serial number."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Idempotency-Replayed", "Retry-After"],
)


@app.exception_handler(RmaError)
async def rma_error_handler(request: Request, exc: RmaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


app.include_router(rma_cases.router, prefix="/v1/rma", tags=["RMA"])
app.include_router(serials.router, prefix="/v1/serials", tags=["Serials"])
app.include_router(klaviyo.router, prefix="/v1/klaviyo", tags=["Klaviyo"])
app.include_router(
    shopify_webhooks.router,
    prefix="/v1/webhooks/shopify",
    tags=["Webhooks"],
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
