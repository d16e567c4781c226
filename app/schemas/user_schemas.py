import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")
NAME_PATTERN = re.compile(r"^[a-zA-ZÀ-ſ]+[- ]?[a-zA-ZÀ-ſ]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\d{3}-\d{3}-\d{4}$")
LOCATION_PATTERN = re.compile(r"^[a-zA-Z0-9 ,]+$")
ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")


def _not_blank(value: str, message: str) -> str:
    if value is None or not value.strip():
        raise ValueError(message)
    return value


# Схемы для группы (batch)
class BatchDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_number: int = Field(..., gt=0, description="Номер группы")
    batch_location: str

    @field_validator("batch_location")
    @classmethod
    def validate_location(cls, v):
        _not_blank(v, "Batch location cannot be blank.")
        if not LOCATION_PATTERN.match(v):
            raise ValueError("Batch location may only contain letters, numbers, spaces, and commas")
        return v


# Схемы для адресов
class AddressDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    street: str
    apt: Optional[str] = None
    city: str
    state: str
    zip: str

    @field_validator("street", "city", "state")
    @classmethod
    def validate_not_blank(cls, v, info):
        return _not_blank(v, f"{info.field_name.capitalize()} cannot be blank.")

    @field_validator("zip")
    @classmethod
    def validate_zip(cls, v):
        if not ZIP_PATTERN.match(v):
            raise ValueError("Zip code format is incorrect.")
        return v


# Схемы для пользователей
class UserDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_name: str
    batch: BatchDTO
    first_name: str
    last_name: str
    email: str
    phone_number: str
    is_driver: bool = False
    is_active: bool = False
    is_accepting_rides: bool = False
    h_address: Optional[AddressDTO] = None
    w_address: Optional[AddressDTO] = None

    @field_validator("user_name")
    @classmethod
    def validate_user_name(cls, v):
        _not_blank(v, "Username cannot be blank.")
        if not 3 <= len(v) <= 12:
            raise ValueError("Number of characters must be between 3 and 12.")
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username may only have letters and numbers.")
        return v

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v):
        _not_blank(v, "First name cannot be blank.")
        if len(v) > 30:
            raise ValueError("Number of characters cannot be larger than 30.")
        if not NAME_PATTERN.match(v):
            raise ValueError("First name format is incorrect")
        return v

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v):
        _not_blank(v, "Last name cannot be blank.")
        if len(v) > 30:
            raise ValueError("Number of characters cannot be larger than 30.")
        if not NAME_PATTERN.match(v):
            raise ValueError("Last name format is incorrect")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        _not_blank(v, "Email cannot be blank.")
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Email format is incorrect.")
        return v

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v):
        _not_blank(v, "Phone number cannot be blank.")
        if not PHONE_PATTERN.match(v):
            raise ValueError("Phone number format is incorrect.")
        return v


class UserDetail(UserDTO):
    user_id: int


class LoginDTO(BaseModel):
    user_name: str = Field(..., min_length=1)
