from enum import Enum
from typing import List, Optional
from sqlmodel import Field, Relationship
from freshsheet.models.base import TimestampMixin


class UserRole(str, Enum):
    STAFF = "STAFF"
    OWNER = "OWNER"
    ORG_ADMIN = "ORG_ADMIN"


class Organization(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str

    restaurants: List["Restaurant"] = Relationship(back_populates="organization")


class Restaurant(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    organization_id: Optional[int] = Field(default=None, foreign_key="organization.id", index=True)

    name: str
    city: Optional[str] = None
    state: Optional[str] = None

    organization: Optional[Organization] = Relationship(back_populates="restaurants")


class User(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: Optional[int] = Field(default=None, foreign_key="restaurant.id", index=True)

    email: str = Field(index=True)
    first_name: Optional[str] = None
    role: UserRole = Field(default=UserRole.STAFF)
