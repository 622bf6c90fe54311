import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from jewelquote.api.endpoints import (
    admin_quotations,
    health,
    order_statuses,
    orders,
    pricing,
    quotations,
)
from jewelquote.db import engine
from jewelquote.errors import PricingEngineError
from jewelquote.models import Base

logger = logging.getLogger(__name__)

app = FastAPI(title="jewelquote")

app.include_router(health.router, prefix="/api/health", tags=["Health"])
app.include_router(pricing.router, prefix="/api/pricing", tags=["Pricing"])
app.include_router(quotations.router, prefix="/api/quotations", tags=["Quotations"])
app.include_router(admin_quotations.router, prefix="/api/admin/quotations", tags=["Admin Quotations"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(order_statuses.router, prefix="/api/admin/order-statuses", tags=["Order Statuses"])


@app.exception_handler(PricingEngineError)
async def pricing_engine_error_handler(request: Request, exc: PricingEngineError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(f"[API] {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"[API] {request.method} {request.url.path} -> {exc.http_status} {exc.error_code}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "error": exc.to_dict()},
    )


@app.on_event("startup")
def on_startup() -> None:
    # Alembic 이 기본. 로컬 개발용으로만 자동 생성 허용
    if os.getenv("DB_AUTO_CREATE_TABLES", "").strip() in ("1", "true", "TRUE", "yes", "YES"):
        Base.metadata.create_all(bind=engine)
