import logging
import os
import json
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from fastapi import Request

load_dotenv()

# Уровень ниже DEBUG для журнала доступа и payload
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "TRACE")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Категории событий
ACCESS = "access"
PAYLOAD = "payload"
EXCEPTION = "exception"
PERFORMANCE = "performance"

CHANNELS = (ACCESS, EXCEPTION, PERFORMANCE)

app_logger = logging.getLogger("app")
error_logger = logging.getLogger("app.errors")

_configured = False


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(log_dir: str = LOG_DIR, level: str = LOG_LEVEL) -> None:
    """
    Настраивает файловые обработчики для логгеров приложения.

    Повторный вызов ничего не делает.
    """
    global _configured
    if _configured:
        return

    # Создаем директорию для логов, если она не существует
    os.makedirs(log_dir, exist_ok=True)
    log_format = logging.Formatter(LOG_FORMAT)

    app_logger.setLevel(_parse_level(level))
    file_handler = logging.FileHandler(os.path.join(log_dir, "app.log"))
    file_handler.setFormatter(log_format)
    app_logger.addHandler(file_handler)

    # Отдельный файл для каждого канала
    for channel in CHANNELS:
        channel_logger = logging.getLogger(f"app.{channel}")
        channel_logger.setLevel(_parse_level(level))
        channel_handler = logging.FileHandler(os.path.join(log_dir, f"{channel}.log"))
        channel_handler.setFormatter(log_format)
        channel_logger.addHandler(channel_handler)

    error_file_handler = logging.FileHandler(os.path.join(log_dir, "errors.log"))
    error_file_handler.setLevel(logging.ERROR)
    error_file_handler.setFormatter(log_format)
    error_logger.addHandler(error_file_handler)

    _configured = True


@dataclass(frozen=True)
class LogEvent:
    """Одна запись журнала, созданная перехватчиком."""

    level: int
    category: str
    source: str
    message: str
    duration_ms: Optional[int] = None
    error: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=datetime.now)


class LogChannel:
    """Именованный канал журнала с уровнями trace < debug < info < warn."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    @property
    def name(self) -> str:
        return self.logger.name

    def emit(self, event: LogEvent) -> None:
        self.logger.log(
            event.level,
            event.message,
            exc_info=event.error,
            extra={
                "category": event.category,
                "source": event.source,
                "duration_ms": event.duration_ms,
                "log_event": event,
            },
        )

    def log(self, level: int, message: str, *, category: str, source: str = "",
            duration_ms: Optional[int] = None, error: Optional[BaseException] = None) -> None:
        self.emit(LogEvent(level, category, source, message, duration_ms, error))

    def trace(self, message: str, **kwargs) -> None:
        self.log(TRACE, message, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        self.log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.log(logging.INFO, message, **kwargs)

    def warn(self, message: str, **kwargs) -> None:
        self.log(logging.WARNING, message, **kwargs)


class LogSink:
    """
    Набор каналов журнала: access, exception, performance.

    Передается в перехватчики явно при сборке приложения.
    Безопасность при параллельной записи обеспечивают обработчики logging.
    """

    def __init__(self, name: str = "app"):
        self.access = LogChannel(logging.getLogger(f"{name}.{ACCESS}"))
        self.exception = LogChannel(logging.getLogger(f"{name}.{EXCEPTION}"))
        self.performance = LogChannel(logging.getLogger(f"{name}.{PERFORMANCE}"))


def log_error(request: Request, exc: Exception, log_dir: str = LOG_DIR) -> str:
    """Подробное логирование ошибки, возвращает идентификатор ошибки"""
    error_time = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    client_host = request.client.host if request.client else "Unknown"

    error_info = {
        "timestamp": error_time,
        "client_ip": client_host,
        "method": request.method,
        "url": str(request.url),
        "error_type": type(exc).__name__,
        "error_message": str(exc),
        "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }

    error_logger.error(f"Error: {request.method} {request.url.path} - {type(exc).__name__}: {exc}")

    # Подробная информация в JSON
    error_id = datetime.now().strftime("%Y%m%d%H%M%S%f")
    os.makedirs(log_dir, exist_ok=True)
    with open(os.path.join(log_dir, f"error_{error_id}.json"), "w") as error_file:
        json.dump(error_info, error_file, indent=4, default=str)

    return error_id
