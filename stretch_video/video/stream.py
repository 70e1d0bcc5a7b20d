"""
Stream de video en vivo a partir de una superficie de dibujo.
Emite frames a tasa constante sin importar a qué ritmo se pinte la superficie.
"""

import logging
from typing import Callable, Optional

from ..domain.errors import RenderSkip

logger = logging.getLogger(__name__)


class LiveVideoStream:
    """
    Muestrea la superficie a FPS fijos y entrega RGB24 crudo a un sink.

    Si el loop de render se atrasa, los huecos se rellenan repitiendo el
    último frame, igual que un captureStream del navegador.
    """

    def __init__(self, canvas, frame_rate: int, total_frames: int):
        self.canvas = canvas
        self.frame_rate = frame_rate
        self.total_frames = total_frames
        self.frames_written = 0
        self.repeated_frames = 0
        self._sink: Optional[Callable[[bytes], None]] = None
        self._last_frame: Optional[bytes] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def attach(self, sink: Callable[[bytes], None]) -> None:
        """Conecta el consumidor (normalmente el stdin del encoder)."""
        self._sink = sink

    def frame_index(self, elapsed_ms: float) -> int:
        # el epsilon evita que 33.333..*30/1000 quede en 0.9999
        return int(elapsed_ms * self.frame_rate / 1000 + 1e-6)

    def push(self, elapsed_ms: float) -> int:
        """
        Captura la superficie y emite los frames pendientes hasta `elapsed_ms`.

        Returns:
            Número de frames emitidos en esta llamada
        """
        if self._closed or self._sink is None:
            return 0

        try:
            self._last_frame = self.canvas.to_rgb_bytes()
        except RenderSkip:
            if self._last_frame is None:
                return 0

        target = min(self.total_frames, self.frame_index(elapsed_ms) + 1)
        return self._emit_until(target)

    def _emit_until(self, target: int) -> int:
        emitted = 0
        while self.frames_written < target:
            self._sink(self._last_frame)
            self.frames_written += 1
            emitted += 1
        if emitted > 1:
            self.repeated_frames += emitted - 1
        return emitted

    def close(self, pad: bool = True) -> None:
        """Completa el stream hasta la duración total (salvo pad=False) y lo cierra."""
        if self._closed:
            return
        if pad and self._sink is not None and self._last_frame is not None:
            padded = self._emit_until(self.total_frames)
            if padded:
                logger.debug(f"Stream completado con {padded} frames repetidos")
        self._closed = True
