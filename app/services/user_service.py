from sqlalchemy.orm import Session
from app.models.models import Address, Batch, User
from app.schemas.user_schemas import AddressDTO, UserDTO
from app.utils.weaving import timed
import logging
from typing import List, Optional

logger = logging.getLogger("app")


def _address(dto: Optional[AddressDTO]) -> Optional[Address]:
    if dto is None:
        return None
    return Address(street=dto.street, apt=dto.apt, city=dto.city, state=dto.state, zip=dto.zip)


class UserService:
    @timed
    async def get_users(self, db: Session) -> List[User]:
        return db.query(User).order_by(User.user_id).all()

    async def get_user_by_id(self, db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.user_id == user_id).first()

    async def get_user_by_username(self, db: Session, username: str) -> List[User]:
        return db.query(User).filter(User.user_name == username).all()

    @timed
    async def get_user_by_role(self, db: Session, is_driver: bool) -> List[User]:
        return db.query(User).filter(User.is_driver == is_driver).order_by(User.user_id).all()

    @timed
    async def get_user_by_role_and_location(self, db: Session, is_driver: bool, location: str) -> List[User]:
        return (
            db.query(User)
            .join(User.batch)
            .filter(User.is_driver == is_driver, Batch.batch_location == location)
            .order_by(User.user_id)
            .all()
        )

    @timed
    async def get_active_drivers(self, db: Session) -> List[User]:
        """Активные водители, принимающие поездки"""
        return (
            db.query(User)
            .filter(User.is_driver.is_(True), User.is_active.is_(True), User.is_accepting_rides.is_(True))
            .order_by(User.user_id)
            .all()
        )

    async def add_user(self, db: Session, user_data: UserDTO) -> User:
        try:
            # Группа задается номером, существующая запись обновляется
            batch = db.merge(Batch(
                batch_number=user_data.batch.batch_number,
                batch_location=user_data.batch.batch_location,
            ))

            db_user = User(
                user_name=user_data.user_name,
                batch=batch,
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                email=user_data.email,
                phone_number=user_data.phone_number,
                is_driver=user_data.is_driver,
                is_active=user_data.is_active,
                is_accepting_rides=user_data.is_accepting_rides,
                h_address=_address(user_data.h_address),
                w_address=_address(user_data.w_address),
            )

            db.add(db_user)
            db.commit()
            db.refresh(db_user)

            logger.info(f"Created user with ID: {db_user.user_id}")
            return db_user

        except Exception as e:
            db.rollback()
            logger.error(f"Error creating user: {str(e)}")
            raise

    async def update_user(self, db: Session, user_id: int, user_data: UserDTO) -> Optional[User]:
        try:
            db_user = db.query(User).filter(User.user_id == user_id).first()
            if not db_user:
                return None

            db_user.user_name = user_data.user_name
            db_user.batch = db.merge(Batch(
                batch_number=user_data.batch.batch_number,
                batch_location=user_data.batch.batch_location,
            ))
            db_user.first_name = user_data.first_name
            db_user.last_name = user_data.last_name
            db_user.email = user_data.email
            db_user.phone_number = user_data.phone_number
            db_user.is_driver = user_data.is_driver
            db_user.is_active = user_data.is_active
            db_user.is_accepting_rides = user_data.is_accepting_rides
            db_user.h_address = _address(user_data.h_address)
            db_user.w_address = _address(user_data.w_address)

            db.commit()
            db.refresh(db_user)
            logger.info(f"Updated user ID: {user_id}")
            return db_user

        except Exception as e:
            db.rollback()
            logger.error(f"Error updating user {user_id}: {str(e)}")
            raise

    async def delete_user_by_id(self, db: Session, user_id: int) -> Optional[str]:
        try:
            db_user = db.query(User).filter(User.user_id == user_id).first()
            if not db_user:
                return None

            db.delete(db_user)
            db.commit()
            logger.info(f"Deleted user ID: {user_id}")
            return f"User with id: {user_id} was deleted"
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting user {user_id}: {str(e)}")
            raise
