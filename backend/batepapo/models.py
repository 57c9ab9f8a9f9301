from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

BROADCAST = "Todos"

STATUS = "status"
MESSAGE = "message"
PRIVATE_MESSAGE = "private_message"

JOIN_TEXT = "entra na sala..."
LEAVE_TEXT = "sai da sala..."


class ParticipantIn(BaseModel):
    name: str = Field(min_length=1)


class MessageIn(BaseModel):
    to: str = Field(min_length=1)
    text: str = Field(min_length=1)
    type: Literal["message", "private_message"]


class Participant(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    last_seen: int = Field(alias="lastSeen")

    def to_dict(self):
        return self.model_dump(by_alias=True)


class ChatEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    sender: str = Field(alias="from")
    to: str
    text: str
    kind: Literal["status", "message", "private_message"] = Field(alias="type")
    time: str

    def to_dict(self):
        return self.model_dump(by_alias=True)

    def visible_to(self, user: str) -> bool:
        return (
            self.sender == user
            or self.to in (user, BROADCAST)
            or self.kind == MESSAGE
        )
