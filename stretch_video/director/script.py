"""
Guión de la Sesión
Valida y convierte la definición del guión en objetos de dominio.
El guión por defecto viene compilado: tres cues de 15s cada uno.
"""
import json
import logging
from typing import Dict, Any, Union

from pydantic import ValidationError

from ..domain.models import SceneScript, Timeline

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_DATA = {
    "cues": [
        {
            "start_time_ms": 0,
            "title": "Cat-Cow Pose",
            "narration_text": (
                "Welcome. Let's begin with Cat-Cow. Inhale to arch the back, lift the chest. "
                "Exhale to round and gently draw the belly in. Move slowly with your breath."
            ),
        },
        {
            "start_time_ms": 15_000,
            "title": "Child's Pose",
            "narration_text": (
                "Shift back into Child's Pose. Hips to heels, arms relaxed. "
                "Breathe into your lower back. Soften your shoulders and jaw."
            ),
        },
        {
            "start_time_ms": 30_000,
            "title": "Seated Forward Bend",
            "narration_text": (
                "Come to a comfortable seat, extend your legs, and fold forward gently. "
                "Keep the spine long and relax into the stretch."
            ),
        },
    ]
}


class ScriptParser:
    """Validador y parseador de guiones."""

    def parse(self, raw_input: Union[str, Dict[str, Any]]) -> SceneScript:
        """
        Convierte un JSON (string o dict) en un SceneScript validado.

        Raises:
            ValueError: si el JSON es inválido o no cumple las reglas del guión
        """
        try:
            if isinstance(raw_input, str):
                data = json.loads(raw_input)
            else:
                data = raw_input
            return SceneScript(**data)
        except json.JSONDecodeError as e:
            logger.error(f"Error decodificando JSON del guión: {e}")
            raise ValueError("El guión no es un JSON válido") from e
        except ValidationError as e:
            logger.error(f"Guión inválido: {e}")
            raise ValueError(f"Guión inválido: {e}") from e

    def check_fits(self, script: SceneScript, timeline: Timeline) -> None:
        """Reglas de negocio extra: todos los cues caen dentro del video."""
        last = script.cues[-1]
        if last.start_time_ms >= timeline.total_duration_ms:
            raise ValueError(
                f"El cue '{last.title}' empieza en {last.start_time_ms} ms, "
                f"fuera de los {timeline.total_duration_ms} ms del video"
            )
        if len(script.cues) != 3:
            logger.warning(f"El guión tiene {len(script.cues)} cues; la animación asume 3 segmentos.")


DEFAULT_SCRIPT: SceneScript = ScriptParser().parse(DEFAULT_SCRIPT_DATA)
DEFAULT_TIMELINE = Timeline()
