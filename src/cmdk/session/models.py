"""Conversation data models."""

from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant"]


class Turn(BaseModel):
    """One message in a conversation."""

    role: Role
    text: str


class Session(BaseModel):
    """The conversation held for one target identity."""

    identity: str = Field(description="Opaque key of the terminal surface (e.g. a tmux pane id)")
    turns: list[Turn] = Field(default_factory=list)
    updated_at: float = Field(default=0.0, description="Unix time of the last append")

    @property
    def is_empty(self) -> bool:
        return not self.turns

    @property
    def user_turns(self) -> int:
        return sum(1 for turn in self.turns if turn.role == "user")


def format_turns(turns: list[Turn]) -> str:
    """Render turns as the markdown transcript used in prompts and history."""
    parts = []
    for turn in turns:
        if turn.role == "user":
            parts.append(f"## User: {turn.text}\n")
        else:
            parts.append(f"## Assistant:\n{turn.text}\n")
    return "\n".join(parts)
