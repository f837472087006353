import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pozhi.api.endpoints import auth as auth_api
from pozhi.api.endpoints import cart as cart_api
from pozhi.api.endpoints import orders as orders_api
from pozhi.api.endpoints import payments as payments_api
from pozhi.api.endpoints import products as products_api
from pozhi.api.endpoints import users as users_api
from pozhi.core.config import LOG_LEVEL, PAYMENT_MODE, is_stripe_live_mode
from pozhi.core.errors import ApiError
from pozhi.db.session import init_db

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    if PAYMENT_MODE == "mock":
        logger.info("Payments running in MOCK mode: no real charges will be made")
    else:
        logger.info(f"Stripe initialized in {'LIVE' if is_stripe_live_mode() else 'TEST'} mode")
    yield


app = FastAPI(title="Pozhi Studio API", version="0.1.0", lifespan=lifespan)


def _error_body(message: str) -> dict:
    return {"success": False, "error": message}


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg", "Invalid value"))
    return JSONResponse(status_code=400, content=_error_body("; ".join(problems) or "Invalid request"))


# Include API routers
app.include_router(auth_api.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(products_api.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(orders_api.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(payments_api.router, prefix="/api/v1/payments", tags=["Payments"])
app.include_router(cart_api.router, prefix="/api/v1/cart", tags=["Cart"])
app.include_router(users_api.router, prefix="/api/v1/users", tags=["Users"])


@app.get("/ping", tags=["Health Check"])
async def ping():
    return {"message": "pong"}
