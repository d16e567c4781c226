from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.schemas.user_schemas import LoginDTO, UserDetail
from app.services.user_service import UserService
from app.utils.weaving import Interceptable, Weaver


class LoginController(Interceptable):
    """Вход по имени пользователя. Тело запроса не попадает в журнал."""

    def __init__(self, user_service: UserService):
        self.user_service = user_service

    def routes(self, weaver: Weaver) -> APIRouter:
        router = APIRouter(prefix="/login", tags=["Login"])
        router.add_api_route(
            "", weaver.endpoint(self.login),
            methods=["POST"], response_model=UserDetail, summary="Logs a user in",
        )
        return router

    async def login(self, credentials: LoginDTO, db: Session = Depends(get_db)):
        users = await self.user_service.get_user_by_username(db, credentials.user_name)
        active = [user for user in users if user.is_active]
        if not active:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid credentials"},
            )
        return active[0]
