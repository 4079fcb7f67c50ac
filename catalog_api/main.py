"""
Главный файл FastAPI приложения
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalog_shared.config import config

from .database import AsyncSessionLocal, create_tables
from .errors import register_exception_handlers
from .routers import admin_router, health_router, partner_router, reviews_router
from .services.audit import AuditLogger
from .services.cache import CacheService, ReviewRateLimiter
from .utils.rating_updater import update_all_establishment_ratings

# Настройка логирования
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    logger.info("Запуск приложения...")

    try:
        await create_tables()
        logger.info("Таблицы базы данных созданы")

        if config.RECALCULATE_ON_STARTUP:
            async with AsyncSessionLocal() as db:
                updated = await update_all_establishment_ratings(db)
            logger.info(f"Рейтинги пересчитаны для {updated} заведений")
    except Exception as e:
        logger.error(f"Ошибка при запуске: {e}")

    yield

    logger.info("Остановка приложения...")
    await app.state.audit_logger.drain()
    await app.state.review_limiter.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Belarus Restaurant Catalog API",
        description="Модерация заведений, отзывы и журнал действий администраторов",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Зависимости уровня приложения; в тестах подменяются
    app.state.audit_logger = AuditLogger(AsyncSessionLocal)
    app.state.review_limiter = ReviewRateLimiter(
        CacheService(config.REDIS_URL),
        limit=config.REVIEW_RATE_LIMIT,
        window_seconds=config.REVIEW_RATE_WINDOW_SECONDS,
    )

    app.include_router(health_router)
    app.include_router(partner_router, prefix=config.API_PREFIX)
    app.include_router(admin_router, prefix=config.API_PREFIX)
    app.include_router(reviews_router, prefix=config.API_PREFIX)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("catalog_api.main:app", host="0.0.0.0", port=8000, reload=not config.is_production)
