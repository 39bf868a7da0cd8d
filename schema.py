from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import List, Optional

# Upper bounds mirror the column sizes in models.py
EMAIL_MAX_LENGTH = 50
NAME_MAX_LENGTH = 50


class LinkCreate(BaseModel):
    original_link: Optional[str] = None
    id_user: Optional[int] = None


class LinkUpdate(BaseModel):
    original_link: Optional[str] = None


class UserCreate(BaseModel):
    email: str = Field(max_length=EMAIL_MAX_LENGTH)
    password: str
    name: str = Field(max_length=NAME_MAX_LENGTH)
    birth_date: Optional[date] = None


class UserUpdate(BaseModel):
    email: Optional[str] = Field(default=None, max_length=EMAIL_MAX_LENGTH)
    name: Optional[str] = Field(default=None, max_length=NAME_MAX_LENGTH)
    birth_date: Optional[date] = None
    role: Optional[str] = None


class PasswordChange(BaseModel):
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class VisitCreate(BaseModel):
    operating_system: Optional[str] = Field(default=None, max_length=100)
    browser: Optional[str] = Field(default=None, max_length=100)
    # invalid addresses are stored as null, so no bound here
    ip_address: Optional[str] = None
    country: Optional[str] = Field(default=None, max_length=50)
    city: Optional[str] = Field(default=None, max_length=100)
    id_user: Optional[int] = None
    id_link: Optional[int] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    registration_date: datetime
    birth_date: Optional[date] = None
    role: str


class LinkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    original_link: str
    short_link: str
    registration_date: datetime
    id_user: int


class VisitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    visited_date: datetime
    operating_system: Optional[str] = None
    browser: Optional[str] = None
    ip_address: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    id_user: Optional[int] = None
    id_link: int


class LinkDetail(LinkResponse):
    user: Optional[UserResponse] = None
    visits: List[VisitResponse] = []


class UserDetail(UserResponse):
    links: List[LinkResponse] = []
    visits: List[VisitResponse] = []


class VisitDetail(VisitResponse):
    user: Optional[UserResponse] = None
    link: Optional[LinkResponse] = None
