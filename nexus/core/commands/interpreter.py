from __future__ import annotations

"""
Slash-command mini-language for the operator chat surface.

    command := sigil verb (SP arg)?

parse() is re-run on every keystroke and yields the suggestion list;
handle_key() drives the list; submit() turns the final text into one result.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from nexus.core.commands.models import (
    DEFAULT_VERBS,
    ChatMessage,
    ClearBuffer,
    CommandPhase,
    CommandResult,
    CommandState,
    DispatchModeration,
    InlineError,
    NoOp,
    Suggestion,
    Verb,
)
from nexus.core.identity.models import Identity
from nexus.core.moderation.models import ModerationAction, ModerationRequest


KEY_DOWN = "ArrowDown"
KEY_UP = "ArrowUp"
KEY_TAB = "Tab"
KEY_ENTER = "Enter"
KEY_ESCAPE = "Escape"


@dataclass(frozen=True)
class KeyResult:
    state: CommandState
    submit: bool = False


class CommandInterpreter:
    def __init__(
        self,
        *,
        verbs: Sequence[Verb] = DEFAULT_VERBS,
        sigil: str = "/",
        default_reason: str = "Console directive",
        default_duration: str = "1d",
    ):
        if not sigil:
            raise ValueError("sigil required")
        self.verbs: Dict[str, Verb] = {v.name.lower(): v for v in verbs}
        self.sigil = sigil
        self.default_reason = default_reason
        self.default_duration = default_duration

    def is_command(self, raw: str) -> bool:
        return str(raw or "").startswith(self.sigil)

    # ---- per keystroke ----
    def parse(self, raw: str, identities: Iterable[Identity] = ()) -> CommandState:
        raw = str(raw or "")
        if not self.is_command(raw):
            return CommandState(raw_input=raw)

        parts = raw[len(self.sigil) :].split(" ")
        verb_part = parts[0].lower()
        known = self.verbs.get(verb_part)

        if len(parts) == 1:
            suggestions = [Suggestion(label=v.name, value=v.name, description=v.description) for v in self.verbs.values() if v.name.lower().startswith(verb_part)]
            return CommandState(
                raw_input=raw,
                phase=CommandPhase.verb,
                recognized_verb=known.name if known else None,
                suggestions=suggestions,
                open=bool(suggestions),
            )

        if len(parts) == 2 and known is not None and known.takes_identity:
            needle = parts[1].lstrip("@").lower()
            matches = [i for i in identities if needle in i.username.lower()]
            return CommandState(
                raw_input=raw,
                phase=CommandPhase.arg,
                recognized_verb=known.name,
                suggestions=[Suggestion(label=i.username, value=i.username, description=i.email or "") for i in matches],
                candidate_args=matches,
                open=bool(matches),
            )

        return CommandState(raw_input=raw, phase=CommandPhase.other, recognized_verb=known.name if known else None)

    def handle_key(self, state: CommandState, key: str, identities: Iterable[Identity] = ()) -> KeyResult:
        if state.open and state.suggestions:
            n = len(state.suggestions)
            if key == KEY_DOWN:
                return KeyResult(state.model_copy(update={"selected_index": (state.selected_index + 1) % n}))
            if key == KEY_UP:
                return KeyResult(state.model_copy(update={"selected_index": (state.selected_index - 1) % n}))
            if key in (KEY_TAB, KEY_ENTER):
                return KeyResult(self.apply(state, identities))
            if key == KEY_ESCAPE:
                return KeyResult(state.model_copy(update={"open": False}))
            return KeyResult(state)
        if key == KEY_ENTER:
            return KeyResult(state, submit=True)
        return KeyResult(state)

    def apply(self, state: CommandState, identities: Iterable[Identity] = ()) -> CommandState:
        """Replace the token being completed with the highlighted candidate."""
        chosen = state.highlighted
        if chosen is None:
            return state
        parts = state.raw_input[len(self.sigil) :].split(" ")
        if state.phase == CommandPhase.verb:
            new_input = f"{self.sigil}{chosen.value} "
        elif state.phase == CommandPhase.arg:
            parts[1] = chosen.value
            new_input = self.sigil + " ".join(parts[:2]) + " "
        else:
            return state
        return self.parse(new_input, identities)

    # ---- submission ----
    def submit(self, raw: str, identities: Iterable[Identity] = ()) -> CommandResult:
        raw = str(raw or "")
        if not raw.strip():
            return NoOp()
        if not self.is_command(raw):
            return ChatMessage(text=raw.strip())

        tokens = raw[len(self.sigil) :].split()
        if not tokens:
            return InlineError(message="Empty directive.")
        verb = self.verbs.get(tokens[0].lower())
        if verb is None:
            return InlineError(message=f"Unknown directive: {self.sigil}{tokens[0]}")

        if verb.name == "clear":
            return ClearBuffer(verb="clear")
        if verb.name == "purge":
            return ClearBuffer(verb="purge", announce=True)

        if len(tokens) < 2:
            return InlineError(message=f"Usage: {self.sigil}{verb.name} <username>")
        target = _find_username(list(identities), tokens[1])
        if target is None:
            return InlineError(message=f"Unknown user: @{tokens[1].lstrip('@')}")
        reason = " ".join(tokens[2:]).strip() or self.default_reason
        request = ModerationRequest(
            target_identity_ref=target.id,
            action_kind=ModerationAction.BAN,
            reason=reason,
            duration_token=self.default_duration,
        )
        return DispatchModeration(request=request, target_username=target.username)


def _find_username(identities: List[Identity], name: str) -> Optional[Identity]:
    low = name.lstrip("@").lower()
    for ident in identities:
        if ident.username.lower() == low:
            return ident
    return None
