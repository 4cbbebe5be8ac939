from .generation import ChatMessage, GenerationPayload
from .profile import DEFAULT_PROFILE_NAME, BackendProfile, profile_label
from .results import (
    BatchResult,
    BatchStats,
    GenerationFailure,
    GenerationResult,
    GenerationSuccess,
    OutcomeRecord,
    SkippedProfile,
)

__all__ = [
    "BackendProfile",
    "DEFAULT_PROFILE_NAME",
    "profile_label",
    "ChatMessage",
    "GenerationPayload",
    "BatchResult",
    "BatchStats",
    "GenerationFailure",
    "GenerationResult",
    "GenerationSuccess",
    "OutcomeRecord",
    "SkippedProfile",
]
