from nexus.core.moderation.models import ModerationAction, ModerationOutcome, ModerationRequest
from nexus.core.moderation.durations import DURATION_TOKENS, resolve_duration
from nexus.core.moderation.executor import ModerationActionExecutor
from nexus.core.moderation.messages import MessageReview

__all__ = [
    "ModerationAction",
    "ModerationOutcome",
    "ModerationRequest",
    "DURATION_TOKENS",
    "resolve_duration",
    "ModerationActionExecutor",
    "MessageReview",
]
