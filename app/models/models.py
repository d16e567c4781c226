from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from app.db.database import Base


class Batch(Base):
    __tablename__ = "batch_table"

    batch_number = Column(Integer, primary_key=True, autoincrement=False)
    batch_location = Column(String, nullable=False)

    users = relationship("User", back_populates="batch")


class Address(Base):
    __tablename__ = "address_table"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    street = Column(String, nullable=False)
    apt = Column(String, nullable=True)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    zip = Column(String, nullable=False)


class User(Base):
    __tablename__ = "user_table"

    user_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_name = Column(String, nullable=False, unique=True)
    batch_number = Column(Integer, ForeignKey("batch_table.batch_number"), nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone_number = Column(String, nullable=False)
    is_driver = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_accepting_rides = Column(Boolean, nullable=False, default=False)
    h_address_id = Column(Integer, ForeignKey("address_table.id"), nullable=True)
    w_address_id = Column(Integer, ForeignKey("address_table.id"), nullable=True)

    batch = relationship("Batch", back_populates="users", lazy="joined")
    h_address = relationship("Address", foreign_keys=[h_address_id], lazy="joined",
                             cascade="all, delete-orphan", single_parent=True)
    w_address = relationship("Address", foreign_keys=[w_address_id], lazy="joined",
                             cascade="all, delete-orphan", single_parent=True)

    @property
    def home_address(self) -> str:
        """Адрес дома в формате для Distance Matrix API"""
        if self.h_address is None:
            return ""
        return f"{self.h_address.street} {self.h_address.city}, {self.h_address.state}"
