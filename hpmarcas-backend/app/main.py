import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.errors import ServiceError
from app.observability import RequestLoggingMiddleware, configure_logging
from app.routers import coupons, orders, payments, pdv, webhooks

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="HP Marcas API")

ALLOWED_ORIGINS = [
    # Dev - Next
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    # Prod
    "https://www.hpmarcas.com.br",
    "https://hpmarcas.com.br",
]


def _parse_env_list(name: str) -> list[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


cors_origins = _parse_env_list("CORS_ALLOWED_ORIGINS") or ALLOWED_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_methods=["*"], allow_headers=["*"], allow_credentials=True,
)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.error, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health")
def health():
    return {"ok": True}


app.include_router(orders.router)
app.include_router(payments.router)
app.include_router(coupons.router)
app.include_router(webhooks.router)
app.include_router(pdv.router)
