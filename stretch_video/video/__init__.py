"""Módulo de video: renderizado de frames y stream en vivo"""

from .renderer import FrameCanvas, BoundRenderer, render_frame, render_preview
from .stream import LiveVideoStream

__all__ = ["FrameCanvas", "BoundRenderer", "render_frame", "render_preview", "LiveVideoStream"]
