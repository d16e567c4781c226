from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from app.utils.logger import log_error


def _response_status(request: Request, default: int) -> int:
    """Статус, выставленный перехватчиком, имеет приоритет"""
    return getattr(request.state, "response_status", None) or default


def _error_message(error: dict) -> str:
    # Сообщение ValueError из валидатора без префикса pydantic
    ctx = error.get("ctx") or {}
    if "error" in ctx:
        return str(ctx["error"])
    return error.get("msg", "")


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Обработчик исключений SQLAlchemy"""
    error_id = log_error(request, exc)

    if isinstance(exc, IntegrityError):
        # Например, пользователь с таким именем уже существует
        return JSONResponse(
            status_code=_response_status(request, status.HTTP_409_CONFLICT),
            content={
                "detail": "User data conflicts with an existing record",
                "error_id": error_id,
                "error_type": "database_constraint",
            }
        )

    return JSONResponse(
        status_code=_response_status(request, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content={
            "detail": "Database error",
            "error_id": error_id,
            "error_type": "database_error",
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Обработчик ошибок валидации входных данных"""
    errors = {}
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", []) if part != "body")
        errors[loc] = _error_message(error)

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation failed",
            "error_type": "validation_error",
            "errors": errors,
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Обработчик всех остальных исключений"""
    error_id = log_error(request, exc)

    return JSONResponse(
        status_code=_response_status(request, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": "server_error",
        }
    )
