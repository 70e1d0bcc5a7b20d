"""
Máquina de posturas.
Traduce el tiempo transcurrido en la postura que se dibuja.
"""
import math

from ..domain.models import Posture, PoseState, Timeline

# Ciclo gato/vaca dentro del primer segmento
CAT_COW_CYCLE_MS = 2000

SEGMENT_POSTURES = (Posture.COW, Posture.CHILD, Posture.SEATED)
SEGMENT_NAMES = ("Cat-Cow Pose", "Child's Pose", "Seated Forward Bend")


def segment_index(elapsed_ms: float, timeline: Timeline) -> int:
    """Índice del tercio del video, acotado a [0, 2]."""
    idx = math.floor(elapsed_ms / timeline.segment_length_ms)
    return max(0, min(len(SEGMENT_POSTURES) - 1, idx))


def segment_name(segment: int) -> str:
    return SEGMENT_NAMES[segment]


def posture_at(elapsed_ms: float, timeline: Timeline) -> PoseState:
    """
    Postura para un instante dado. Función pura: mismo tiempo, misma postura.

    En el primer segmento alterna vaca (primera mitad del ciclo) y gato
    (segunda mitad) cada 2 segundos, sin interpolación.
    """
    segment = segment_index(elapsed_ms, timeline)
    posture = SEGMENT_POSTURES[segment]
    blend = 0.0

    if segment == 0:
        blend = (elapsed_ms % CAT_COW_CYCLE_MS) / CAT_COW_CYCLE_MS
        posture = Posture.COW if blend < 0.5 else Posture.CAT

    return PoseState(segment=segment, posture=posture, blend=blend, name=SEGMENT_NAMES[segment])
