import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.controllers.login_controller import LoginController
from app.controllers.user_controller import UserController
from app.db.database import DATABASE_URL, Base, engine, safe_url
from app.services.distance_service import DistanceService
from app.services.user_service import UserService
from app.utils.exception_handlers import (
    sqlalchemy_exception_handler,
    validation_exception_handler,
    general_exception_handler
)
from app.utils.logger import LogSink, configure_logging
from app.utils.weaving import Weaver

load_dotenv()

logger = logging.getLogger("app")


def create_app(sink: Optional[LogSink] = None, distance_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Собирает приложение: журнал, перехватчики, сервисы и контроллеры.

    Цепочки перехватчиков строятся здесь один раз.
    """
    configure_logging()
    logger.info(f"Connecting to database: {safe_url(DATABASE_URL)}")
    sink = sink or LogSink()
    weaver = Weaver(sink)

    # Таблицы создаются при старте, миграций нет
    Base.metadata.create_all(bind=engine)

    distance_client = distance_client or httpx.AsyncClient(timeout=10.0)
    user_service = weaver.weave(UserService())
    distance_service = weaver.weave(DistanceService(distance_client))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Rideshare User API")
        yield
        await distance_client.aclose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Rideshare User API",
        description="API для работы с пользователями: водителями и пассажирами",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Настройка CORS для всех доменов
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Регистрируем обработчики исключений
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Подключаем маршруты
    app.include_router(UserController(user_service, distance_service).routes(weaver))
    app.include_router(LoginController(user_service).routes(weaver))

    # Простой эндпоинт для проверки состояния сервера
    @app.get("/health", tags=["Система"])
    async def health_check():
        """Проверка работоспособности API"""
        return {"status": "ok"}

    app.state.sink = sink
    app.state.weaver = weaver
    app.state.user_service = user_service
    app.state.distance_service = distance_service
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
