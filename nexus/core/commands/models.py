from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from nexus.core.identity.models import Identity
from nexus.core.moderation.models import ModerationRequest


class CommandPhase(str, Enum):
    idle = "idle"  # plain chat text
    verb = "verb"  # completing the verb token
    arg = "arg"  # completing an identity argument
    other = "other"  # command shape with nothing to complete


@dataclass(frozen=True)
class Verb:
    name: str
    description: str
    takes_identity: bool = False


DEFAULT_VERBS = (
    Verb("ban", "Revoke user access", takes_identity=True),
    Verb("purge", "Total buffer wipe"),
    Verb("clear", "Local console reset"),
)


class Suggestion(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    label: str
    value: str
    description: str = ""


class CommandState(BaseModel):
    """Parser state for one input event."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    raw_input: str = ""
    phase: CommandPhase = CommandPhase.idle
    recognized_verb: Optional[str] = None
    suggestions: List[Suggestion] = Field(default_factory=list)
    candidate_args: List[Identity] = Field(default_factory=list)
    selected_index: int = 0
    open: bool = False

    @property
    def highlighted(self) -> Optional[Suggestion]:
        if not self.open or not self.suggestions:
            return None
        return self.suggestions[self.selected_index % len(self.suggestions)]


# ---- submission results ----
@dataclass(frozen=True)
class ChatMessage:
    text: str


@dataclass(frozen=True)
class DispatchModeration:
    request: ModerationRequest
    target_username: str


@dataclass(frozen=True)
class ClearBuffer:
    verb: str
    announce: bool = False


@dataclass(frozen=True)
class InlineError:
    message: str


@dataclass(frozen=True)
class NoOp:
    pass


CommandResult = Union[ChatMessage, DispatchModeration, ClearBuffer, InlineError, NoOp]
