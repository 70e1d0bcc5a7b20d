"""Captura: reloj de sesión, encoder y máquina de estados de la sesión"""

from .clock import CancelToken, FrameClock, SessionClock, WallClock
from .encoder import CombinedStream, FFmpegEncoder
from .session import CaptureSession

__all__ = [
    "CancelToken",
    "FrameClock",
    "SessionClock",
    "WallClock",
    "CombinedStream",
    "FFmpegEncoder",
    "CaptureSession",
]
