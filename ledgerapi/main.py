import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from ledgerapi import containers
from ledgerapi.config import settings
from ledgerapi.core.exception_handlers import register_exception_handlers
from ledgerapi.core.logging_middleware import LoggingMiddleware
from ledgerapi.logging_config import setup_logging
from ledgerapi.routers import (
    game_router,
    health_router,
    point_router,
    raffle_router,
    shop_router,
)

load_dotenv("ledgerapi/.env")
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL, json_logs=settings.ENVIRONMENT == "production")

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router.router)
    for module in (point_router, shop_router, game_router, raffle_router):
        app.include_router(module.router, prefix=settings.API_V1_STR)

    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
