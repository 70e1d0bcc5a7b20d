"""Módulo de narración: motor TTS y programador de locuciones"""

from .edge_tts import EdgeTTSEngine, select_voice, clean_text_for_tts, NARRATION_RATE, NARRATION_PITCH
from .scheduler import NarrationScheduler, ScheduledUtterance, NARRATION_LEAD_MS

__all__ = [
    "EdgeTTSEngine",
    "select_voice",
    "clean_text_for_tts",
    "NARRATION_RATE",
    "NARRATION_PITCH",
    "NarrationScheduler",
    "ScheduledUtterance",
    "NARRATION_LEAD_MS",
]
