import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import __version__, config, crud
from .database import make_engine, make_sessionmaker
from .emailer import build_mailer
from .errors import ShopError
from .models import Base
from .payments import build_gateway
from .routers import admin_router, auth_router, checkout_router, drop_router, shop_router

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def init_admin_user(app: FastAPI) -> None:
    if not config.ADMIN_PASSWORD:
        logger.warning("ADMIN_PASSWORD is not set; skipping admin user creation")
        return

    db = app.state.SessionLocal()
    try:
        if crud.ensure_admin_user(db, config.ADMIN_EMAIL, config.ADMIN_PASSWORD):
            logger.info("Admin user %s created", config.ADMIN_EMAIL)
    except SQLAlchemyError:
        logger.exception("Error initializing admin user")
        db.rollback()
    finally:
        db.close()


def create_app(database_url: Optional[str] = None) -> FastAPI:
    app = FastAPI(title="Drop Store", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    engine = make_engine(database_url or config.DATABASE_URL)
    app.state.engine = engine
    app.state.SessionLocal = make_sessionmaker(engine)
    app.state.payments = build_gateway()
    app.state.mailer = build_mailer()

    # Create database tables
    Base.metadata.create_all(bind=engine)

    app.include_router(auth_router.router)
    app.include_router(drop_router.router)
    app.include_router(shop_router.router)
    app.include_router(checkout_router.router)
    app.include_router(admin_router.router)

    @app.exception_handler(ShopError)
    async def _shop_error(request: Request, exc: ShopError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)

    @app.exception_handler(SQLAlchemyError)
    async def _store_error(request: Request, exc: SQLAlchemyError):
        logger.error("Store error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Database error"})

    @app.on_event("startup")
    def _startup() -> None:
        init_admin_user(app)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        engine.dispose()

    @app.get("/")
    def root():
        return {"service": "dropstore", "status": "running", "version": __version__}

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "service": "dropstore"}

    return app


app = create_app()
