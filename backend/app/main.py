from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.config import settings
from app.core.errors import DataUnavailableError
from app.core.logging import setup_logging

setup_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Dude Pricing API",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Storefront pricing endpoints answer with {success, error} on bad input
PRICING_PATHS = ("/api/tax/calculate", "/api/campaigns/evaluate")


@app.exception_handler(RequestValidationError)
async def pricing_validation_handler(request: Request, exc: RequestValidationError):
    if request.url.path.rstrip("/") in PRICING_PATHS:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": f"{location}: {message}" if location else message},
        )
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(DataUnavailableError)
async def data_unavailable_handler(request: Request, exc: DataUnavailableError):
    return JSONResponse(status_code=503, content={"success": False, "error": str(exc)})


# Import routers after app creation to avoid circular imports
from app.api import (  # noqa: E402
    tax,
    campaigns,
    admin_tax,
    admin_campaigns,
)

# Routers - all already have /api prefix
app.include_router(tax.router)
app.include_router(campaigns.router)
app.include_router(admin_tax.router)
app.include_router(admin_campaigns.router)


@app.get("/")
def root():
    return {"status": "ok", "service": "dude-pricing-api"}


@app.get("/api/health")
def health_check():
    return {
        "status": "healthy",
        "env": settings.ENV
    }
