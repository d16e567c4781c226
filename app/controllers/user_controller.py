from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.models.models import User
from app.schemas.user_schemas import UserDetail, UserDTO
from app.services.distance_service import DistanceService
from app.services.user_service import UserService
from app.utils.weaving import Interceptable, Weaver, timed


def _not_found(detail: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": detail})


class UserController(Interceptable):
    """
    Обработка запросов к /users.

    Все пользователи, пользователи по роли (водитель или нет), по имени
    пользователя, по роли и расположению группы, а также добавление,
    обновление и удаление пользователя по ID.
    """

    def __init__(self, user_service: UserService, distance_service: DistanceService):
        self.user_service = user_service
        self.distance_service = distance_service

    def routes(self, weaver: Weaver) -> APIRouter:
        router = APIRouter(prefix="/users", tags=["User"])
        router.add_api_route(
            "/driver/{address}", weaver.endpoint(self.get_top_five_drivers),
            methods=["GET"], response_model=List[UserDetail], summary="Returns user drivers",
        )
        router.add_api_route(
            "", weaver.endpoint(self.get_users),
            methods=["GET"], response_model=List[UserDetail], summary="Returns all users",
        )
        router.add_api_route(
            "/{id}", weaver.endpoint(self.get_user_by_id),
            methods=["GET"], response_model=UserDetail, summary="Returns user by id",
        )
        router.add_api_route(
            "", weaver.endpoint(self.add_user),
            methods=["POST"], response_model=UserDetail,
            status_code=status.HTTP_201_CREATED, summary="Adds a new user",
        )
        router.add_api_route(
            "/{id}", weaver.endpoint(self.update_user),
            methods=["PUT"], response_model=UserDetail, summary="Updates user by id",
        )
        router.add_api_route(
            "/{id}", weaver.endpoint(self.delete_user_by_id),
            methods=["DELETE"], response_model=str, summary="Deletes user by id",
        )
        return router

    @timed
    async def get_top_five_drivers(self, address: str, db: Session = Depends(get_db)):
        """Пять ближайших к адресу активных водителей"""
        destinations: Dict[str, User] = {}
        for driver in await self.user_service.get_active_drivers(db):
            if driver.h_address is not None:
                destinations[driver.home_address] = driver
        if not destinations:
            return []
        return await self.distance_service.distance_matrix([address], destinations)

    async def get_users(
        self,
        is_driver: Optional[bool] = Query(None, alias="is-driver"),
        # Только буквы и цифры, защита от SQL и HTML инъекций
        username: Optional[str] = Query(None, pattern=r"^[a-zA-Z0-9]+$"),
        location: Optional[str] = Query(None, pattern=r"^[a-zA-Z0-9 ,]+$"),
        db: Session = Depends(get_db),
    ):
        """
        Список пользователей.

        Можно отфильтровать по is-driver, location и username.
        """
        if is_driver is not None and location is not None:
            return await self.user_service.get_user_by_role_and_location(db, is_driver, location)
        elif is_driver is not None:
            return await self.user_service.get_user_by_role(db, is_driver)
        elif username is not None:
            return await self.user_service.get_user_by_username(db, username)

        return await self.user_service.get_users(db)

    async def get_user_by_id(self, id: int = Path(..., gt=0), db: Session = Depends(get_db)):
        user = await self.user_service.get_user_by_id(db, id)
        if user is None:
            return _not_found(f"User with id {id} not found")
        return user

    async def add_user(self, user_dto: UserDTO, db: Session = Depends(get_db)):
        """Создает пользователя, возвращает его с кодом 201"""
        return await self.user_service.add_user(db, user_dto)

    async def update_user(self, user_dto: UserDTO, id: int = Path(..., gt=0), db: Session = Depends(get_db)):
        user = await self.user_service.update_user(db, id, user_dto)
        if user is None:
            return _not_found(f"User with id {id} not found")
        return user

    async def delete_user_by_id(self, id: int = Path(..., gt=0), db: Session = Depends(get_db)):
        message = await self.user_service.delete_user_by_id(db, id)
        if message is None:
            return _not_found(f"User with id {id} not found")
        return message
