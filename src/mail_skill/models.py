"""Request/response models of the voice assistant webhook protocol."""
from __future__ import annotations

from pydantic import BaseModel, Field

TYPE_SIMPLE_UTTERANCE = "SimpleUtterance"
RESPONSE_VERSION = "1.0"


# -----------------------------
# Request
# -----------------------------
class Utterance(BaseModel):
    type: str
    command: str = ""


class SessionUser(BaseModel):
    user_id: str


class Session(BaseModel):
    new: bool = False
    user: SessionUser


class SkillRequest(BaseModel):
    # e.g. "Europe/Moscow"
    timezone: str = ""
    request: Utterance
    session: Session
    version: str = ""

    @property
    def caller_id(self) -> str:
        return self.session.user.user_id


# -----------------------------
# Response
# -----------------------------
class ResponsePayload(BaseModel):
    text: str = Field(..., description="Text the assistant will speak.")


class SkillResponse(BaseModel):
    response: ResponsePayload
    version: str = RESPONSE_VERSION


def compose_response(text: str) -> SkillResponse:
    """Wrap reply text into the platform envelope."""
    return SkillResponse(response=ResponsePayload(text=text), version=RESPONSE_VERSION)
