"""
Programador de la narración.
Emite una locución por cada cue del guión, con un pequeño retraso fijo.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..domain.errors import AudioEngineError
from ..domain.models import Cue, SceneScript
from .edge_tts import NARRATION_PITCH, NARRATION_RATE

logger = logging.getLogger(__name__)

NARRATION_LEAD_MS = 300


@dataclass
class ScheduledUtterance:
    """Una locución programada respecto al origen del reloj de sesión."""
    cue: Cue
    at_ms: int
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class NarrationScheduler:
    """
    Programa la narración contra el mismo origen que usa el loop de render.

    El origen compartido es el instante cero de la sesión: frame 0 del video
    y muestra 0 de la mezcla de audio.
    """
    script: SceneScript
    sink: object
    lead_ms: int = NARRATION_LEAD_MS
    rate: str = NARRATION_RATE
    pitch: str = NARRATION_PITCH
    voice: Optional[str] = None
    scheduled: List[ScheduledUtterance] = field(default_factory=list)
    started: bool = False

    def offset_for(self, cue: Cue) -> int:
        return cue.start_time_ms + self.lead_ms

    def start(self) -> List[ScheduledUtterance]:
        """
        Emite todas las locuciones. Un cue que falla queda mudo y no frena al resto.

        Raises:
            AudioEngineError: si el programador ya fue iniciado
        """
        if self.started:
            raise AudioEngineError("La narración ya fue iniciada")
        self.started = True

        for cue in self.script.cues:
            item = ScheduledUtterance(cue=cue, at_ms=self.offset_for(cue))
            try:
                item.duration_ms = self.sink.speak(
                    cue.narration_text,
                    at_ms=item.at_ms,
                    rate=self.rate,
                    pitch=self.pitch,
                    voice=self.voice,
                )
                logger.info(f"Narración '{cue.title}' programada en {item.at_ms}ms ({item.duration_ms}ms)")
            except AudioEngineError as e:
                item.error = str(e)
                logger.warning(f"Narración '{cue.title}' no disponible: {e}")
            self.scheduled.append(item)

        return self.scheduled

    @property
    def failed(self) -> List[ScheduledUtterance]:
        return [item for item in self.scheduled if not item.ok]
