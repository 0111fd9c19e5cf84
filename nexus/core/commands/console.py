from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from nexus.core.clock import Clock
from nexus.core.commands.interpreter import CommandInterpreter
from nexus.core.commands.models import (
    ChatMessage,
    ClearBuffer,
    CommandResult,
    CommandState,
    DispatchModeration,
    InlineError,
    NoOp,
)
from nexus.core.errors import NexusError, PermissionDeniedError, StorageUnavailable
from nexus.core.identity.directory import IdentityDirectory
from nexus.core.identity.models import Identity, Operator
from nexus.core.identity.tiers import TierPolicy
from nexus.core.moderation.executor import ModerationActionExecutor
from nexus.core.moderation.models import ModerationOutcome
from nexus.core.sync.scheduler import SyncScheduler


PURGE_ANNOUNCEMENT = "Total Buffer Purge Sequence Successful."


class MessageKind(str, Enum):
    user = "user"
    system = "system"


class ConsoleMessage(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: MessageKind
    sender: str
    text: str
    at: float


@dataclass(frozen=True)
class ConsoleReply:
    ok: bool
    result: CommandResult
    error: Optional[str] = None
    outcome: Optional[ModerationOutcome] = None
    added: List[ConsoleMessage] = field(default_factory=list)


class OperatorConsole:
    """
    Operator chat surface: a bounded in-memory message buffer fed by
    CommandInterpreter submissions.

    Every effect except inline parse errors needs an authenticated, unsuspended
    operator taken from the committed sync snapshot.
    """

    def __init__(
        self,
        *,
        interpreter: CommandInterpreter,
        executor: ModerationActionExecutor,
        directory: IdentityDirectory,
        scheduler: SyncScheduler,
        tiers: TierPolicy,
        clock: Clock = time.time,
        max_messages: int = 500,
        logger: Optional[logging.Logger] = None,
    ):
        self.interpreter = interpreter
        self.executor = executor
        self.directory = directory
        self.scheduler = scheduler
        self.tiers = tiers
        self.clock = clock
        self.max_messages = int(max_messages)
        self.logger = logger or logging.getLogger("nexus.commands")
        self._messages: List[ConsoleMessage] = []

    @property
    def messages(self) -> List[ConsoleMessage]:
        return list(self._messages)

    async def candidates(self) -> List[Identity]:
        try:
            return await self.directory.identities()
        except StorageUnavailable as e:
            self.logger.warning(f"Identity list unavailable for completion: {e.context}")
            return []

    async def suggest(self, raw: str) -> CommandState:
        return self.interpreter.parse(raw, await self.candidates())

    async def submit(self, raw: str) -> ConsoleReply:
        result = self.interpreter.submit(raw, await self.candidates())
        if isinstance(result, NoOp):
            return ConsoleReply(ok=True, result=result)
        if isinstance(result, InlineError):
            return ConsoleReply(ok=False, result=result, error=result.message)

        try:
            acting = self.acting()
        except NexusError as e:
            return ConsoleReply(ok=False, result=result, error=e.user_message)

        if isinstance(result, ChatMessage):
            msg = self._append(MessageKind.user, acting.label, result.text)
            return ConsoleReply(ok=True, result=result, added=[msg])
        if isinstance(result, ClearBuffer):
            self._messages = []
            self.logger.info(f"Console buffer cleared by {acting.label} ({result.verb})")
            added = [self._append(MessageKind.system, "system", PURGE_ANNOUNCEMENT)] if result.announce else []
            return ConsoleReply(ok=True, result=result, added=added)
        return await self._dispatch(result, acting)

    async def _dispatch(self, result: DispatchModeration, acting: Operator) -> ConsoleReply:
        outcome = await self.executor.execute(result.request, acting)
        if not outcome.ok:
            message = outcome.error.user_message if outcome.error is not None else "Moderation failed."
            return ConsoleReply(ok=False, result=result, error=message, outcome=outcome)
        text = f"Access for @{result.target_username} revoked for {outcome.duration_label}. Reason: {result.request.reason}"
        if outcome.clamped:
            text = f"{text} (narrowed to the standard-tier maximum)"
        msg = self._append(MessageKind.system, "system", text)
        return ConsoleReply(ok=True, result=result, outcome=outcome, added=[msg])

    def acting(self) -> Operator:
        snap = self.scheduler.read()
        if snap.session is None:
            raise PermissionDeniedError("No authenticated operator.")
        if snap.suspended:
            raise PermissionDeniedError("Operator access is suspended.", actor=snap.session.identity_ref)
        return self.tiers.operator_for(snap.session)

    def _append(self, kind: MessageKind, sender: str, text: str) -> ConsoleMessage:
        msg = ConsoleMessage(kind=kind, sender=sender, text=text, at=float(self.clock()))
        self._messages.append(msg)
        if len(self._messages) > self.max_messages:
            self._messages = self._messages[-self.max_messages :]
        return msg
