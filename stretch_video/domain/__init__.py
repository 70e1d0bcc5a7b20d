"""Modelos y errores de dominio"""

from .models import (
    Cue,
    SceneScript,
    Timeline,
    Posture,
    PoseState,
    SessionState,
    SessionArtifacts,
)
from .errors import (
    StretchVideoError,
    RenderSkip,
    EncoderUnavailable,
    EncoderError,
    AudioEngineError,
    TranscodeError,
    TranscodeTimeout,
    SessionBusyError,
    SessionCancelled,
)

__all__ = [
    "Cue",
    "SceneScript",
    "Timeline",
    "Posture",
    "PoseState",
    "SessionState",
    "SessionArtifacts",
    "StretchVideoError",
    "RenderSkip",
    "EncoderUnavailable",
    "EncoderError",
    "AudioEngineError",
    "TranscodeError",
    "TranscodeTimeout",
    "SessionBusyError",
    "SessionCancelled",
]
