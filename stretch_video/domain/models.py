"""
Modelos de Dominio
Definen la estructura de datos central del generador de videos.
"""
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Cue(BaseModel):
    """Un evento narrado del guión: cuándo empieza y qué se dice."""
    model_config = ConfigDict(frozen=True)

    start_time_ms: int = Field(..., ge=0, description="Offset desde el inicio de la sesión")
    title: str = Field(..., description="Nombre de la postura mostrado en pantalla")
    narration_text: str = Field(..., description="Texto que narra el TTS")


class SceneScript(BaseModel):
    """
    El guión completo: secuencia ordenada de cues.
    Inmutable una vez creado.
    """
    model_config = ConfigDict(frozen=True)

    cues: tuple[Cue, ...]

    @field_validator("cues")
    @classmethod
    def _check_order(cls, cues):
        if not cues:
            raise ValueError("El guión necesita al menos un cue")
        if cues[0].start_time_ms != 0:
            raise ValueError("El primer cue debe empezar en 0 ms")
        for prev, cue in zip(cues, cues[1:]):
            if cue.start_time_ms <= prev.start_time_ms:
                raise ValueError(
                    f"Cues desordenados: {cue.start_time_ms} ms después de {prev.start_time_ms} ms"
                )
        return cues

    @property
    def titles(self) -> List[str]:
        return [cue.title for cue in self.cues]


class Timeline(BaseModel):
    """Constantes temporales y de formato del video (9:16)."""
    model_config = ConfigDict(frozen=True)

    total_duration_ms: int = 45_000
    frame_rate: int = 30
    width: int = 1080
    height: int = 1920

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.frame_rate

    @property
    def total_frames(self) -> int:
        return self.total_duration_ms * self.frame_rate // 1000

    @property
    def segment_length_ms(self) -> float:
        return self.total_duration_ms / 3

    @property
    def total_duration_s(self) -> float:
        return self.total_duration_ms / 1000.0


class Posture(str, Enum):
    """Posturas dibujables de la figura."""
    COW = "cow"
    CAT = "cat"
    CHILD = "child"
    SEATED = "seated"


class PoseState(BaseModel):
    """Resultado de la máquina de posturas para un instante dado."""
    model_config = ConfigDict(frozen=True)

    segment: int
    posture: Posture
    blend: float = 0.0
    name: str = ""


class SessionState(str, Enum):
    """Estados de una sesión de captura."""
    IDLE = "idle"
    PREPARING = "preparing"
    RECORDING = "recording"
    STOPPING = "stopping"
    TRANSCODING = "transcoding"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.DONE, SessionState.FAILED, SessionState.CANCELLED)

    @property
    def is_active(self) -> bool:
        return not self.is_terminal and self is not SessionState.IDLE


class SessionArtifacts(BaseModel):
    """Los dos entregables descargables de una sesión."""
    captured: bytes
    transcoded: Optional[bytes] = None
    captured_name: str = "morning-stretches.webm"
    transcoded_name: str = "morning-stretches.mp4"
