# storefront/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from storefront.data.database import Base, engine
from storefront.api.middleware import auth_session_middleware, locale_middleware
from storefront.api.routers import auth, carts, content, health, orders, products
from storefront.utils.settings import CORS_ORIGINS
from storefront.utils.logging import get_logger

# import wszystkich modeli przed create_all
from storefront.data import models  # noqa: F401

logger = get_logger(__name__)

logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")

try:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
except Exception as e:
    logger.error(f"Failed to create tables: {e}")
    raise


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """400 z {"errors": {pole: komunikat}} zamiast domyslnego 422."""
    errors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = loc[-1] if loc else "request"
        message = err.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, message)
    return JSONResponse(status_code=400, content={"errors": errors})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront",
        version="1.0.0",
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.middleware("http")(auth_session_middleware)
    app.middleware("http")(locale_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(products.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(content.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
