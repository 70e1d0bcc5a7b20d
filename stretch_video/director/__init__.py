"""Guión y máquina de posturas"""

from .script import ScriptParser, DEFAULT_SCRIPT, DEFAULT_TIMELINE
from .pose import posture_at, segment_index, segment_name

__all__ = [
    "ScriptParser",
    "DEFAULT_SCRIPT",
    "DEFAULT_TIMELINE",
    "posture_at",
    "segment_index",
    "segment_name",
]
