# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""Pydantic request/response schemas."""
import uuid
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError


class PersonaIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    friends: List[str] = Field(..., description="IDs of existing personas")

    @field_validator("name", "email", "phone", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("friends")
    @classmethod
    def normalise_friend_ids(cls, v: List[str]) -> List[str]:
        normalised = []
        for friend_id in v:
            try:
                normalised.append(str(uuid.UUID(friend_id.strip())))
            except ValueError:
                raise PydanticCustomError(
                    "invalid_friend_id",
                    "ID de amigo inválido: {friend_id}",
                    {"friend_id": friend_id},
                )
        return normalised


class PersonaCreate(PersonaIn):
    pass


class PersonaUpdate(PersonaIn):
    """Email identifies the persona and is never changed."""


class PersonaDelete(BaseModel):
    email: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class FriendSummary(BaseModel):
    id: str
    name: str
    email: str
    phone: str


class PersonaOut(FriendSummary):
    friends: List[FriendSummary] = []


class PersonaMessage(BaseModel):
    message: str
    persona: PersonaOut


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    request_id: Optional[str] = None
