from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, timezone
from typing import List
from uuid import uuid4


class User(SQLModel, table=True):
    """Account record backing the authentication collaborator."""
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    tasks: List["Task"] = Relationship(back_populates="owner")
