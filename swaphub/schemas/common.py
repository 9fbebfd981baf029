# swaphub/schemas/common.py
"""
References to users and skills in API responses.

A party or skill is either resolved (the row was loaded and has a display
name) or unresolved (only the id is known). Clients switch on ``kind``.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class UnresolvedRef(BaseModel):
    kind: Literal["unresolved"] = "unresolved"
    id: int


class ResolvedRef(BaseModel):
    kind: Literal["resolved"] = "resolved"
    id: int
    display: str


Ref = Annotated[Union[ResolvedRef, UnresolvedRef], Field(discriminator="kind")]


def to_ref(value) -> Optional[Union[ResolvedRef, UnresolvedRef]]:
    """Build a reference from a loaded User/Skill row or a bare id."""
    if value is None:
        return None
    if isinstance(value, int):
        return UnresolvedRef(id=value)
    display = getattr(value, "name", None) or getattr(value, "title", None)
    if display:
        return ResolvedRef(id=value.id, display=display)
    return UnresolvedRef(id=value.id)


def ref_for(obj, id_value: Optional[int]) -> Optional[Union[ResolvedRef, UnresolvedRef]]:
    """Prefer the loaded relationship, fall back to the foreign key."""
    return to_ref(obj if obj is not None else id_value)


class MessageResponse(BaseModel):
    message: str
