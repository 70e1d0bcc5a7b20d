"""
Motor Edge-TTS para la narración.
Usa las voces neurales de Microsoft Edge a través del paquete edge-tts.
"""

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from pydub import AudioSegment

from ..domain.errors import AudioEngineError
from ..utils.backoff import with_retry

logger = logging.getLogger(__name__)

# Voces en inglés conocidas (se usan para mostrar nombres amigables)
ENGLISH_VOICES = {
    "en-US-AriaNeural": "Aria (US, femenino)",
    "en-US-JennyNeural": "Jenny (US, femenino)",
    "en-US-MichelleNeural": "Michelle (US, femenino)",
    "en-US-GuyNeural": "Guy (US, masculino)",
    "en-GB-SoniaNeural": "Sonia (UK, femenino)",
}

# Orden de preferencia cuando no hay una voz configurada que exista:
# inglés de EE.UU. femenina, luego cualquier inglés de EE.UU., luego cualquiera.
VOICE_PREFERENCES = (
    {"locale": "en-US", "gender": "Female"},
    {"locale": "en-US"},
    {},
)

# Un poco más lento que lo normal y un tono algo más agudo: voz calmada
NARRATION_RATE = "-5%"
NARRATION_PITCH = "+10Hz"


def clean_text_for_tts(text: str) -> str:
    """
    Limpia texto para síntesis TTS, removiendo elementos problemáticos.
    """
    text = re.sub(r'https?://\S+', '', text)

    emoji_pattern = re.compile("["
        u"\U0001F600-\U0001F64F"
        u"\U0001F300-\U0001F5FF"
        u"\U0001F680-\U0001F6FF"
        u"\U0001F1E0-\U0001F1FF"
        u"\U00002702-\U000027B0"
        "]+", flags=re.UNICODE)
    text = emoji_pattern.sub('', text)

    text = re.sub(r'[*_~`|<>{}[\]\\]', '', text)
    text = re.sub(r'\s+', ' ', text)
    text = re.sub(r'[.]{2,}', '.', text)

    return text.strip()


def _matches(voice: dict, rule: dict) -> bool:
    locale = rule.get("locale")
    if locale and not str(voice.get("Locale", "")).startswith(locale):
        return False
    gender = rule.get("gender")
    if gender and str(voice.get("Gender", "")).lower() != gender.lower():
        return False
    return True


def select_voice(
    voices: Sequence[dict],
    preferred_names: Sequence[str] = (),
    rules: Sequence[dict] = VOICE_PREFERENCES,
) -> Optional[str]:
    """
    Elige una voz recorriendo la lista de prioridades.

    Args:
        voices: Voces que ofrece el motor (dicts con ShortName, Locale, Gender)
        preferred_names: Nombres exactos a probar primero
        rules: Reglas de respaldo por idioma/género

    Returns:
        ShortName de la voz elegida, o None para usar la voz por defecto del motor
    """
    available = {v.get("ShortName") for v in voices}
    for name in preferred_names:
        if name in available:
            return name

    for rule in rules:
        for voice in voices:
            if _matches(voice, rule):
                return voice.get("ShortName")

    return None


class EdgeTTSEngine:
    """Motor de Text-to-Speech usando Edge-TTS (Microsoft Neural Voices)."""

    def __init__(
        self,
        temp_dir: Optional[str] = None,
        preferred_voices: Sequence[str] = (),
        max_attempts: int = 3,
    ):
        """
        Inicializa el motor Edge-TTS.

        Args:
            temp_dir: Directorio para los MP3 intermedios (None = temporal del sistema)
            preferred_voices: Voces a preferir, en orden
            max_attempts: Intentos ante errores de red
        """
        self.temp_dir = temp_dir
        if temp_dir:
            Path(temp_dir).mkdir(parents=True, exist_ok=True)
        self.preferred_voices = list(preferred_voices)
        self.max_attempts = max_attempts

    def list_voices(self) -> list[dict]:
        """Voces disponibles en el servicio."""
        import edge_tts

        @with_retry(max_attempts=self.max_attempts)
        def _fetch():
            return asyncio.run(edge_tts.list_voices())

        return _fetch()

    def pick_voice(self) -> Optional[str]:
        """
        Selección best-effort. Si no se puede listar o no hay coincidencias,
        devuelve None y el motor usa su voz por defecto.
        """
        try:
            voices = self.list_voices()
        except Exception as e:
            logger.warning(f"No se pudieron listar las voces, usando la voz por defecto: {e}")
            return None

        voice = select_voice(voices, self.preferred_voices)
        if voice:
            logger.info(f"Voz elegida: {ENGLISH_VOICES.get(voice, voice)}")
        else:
            logger.info("Ninguna voz coincide; usando la voz por defecto del motor")
        return voice

    async def _synthesize_async(
        self,
        text: str,
        output_path: str,
        voice: Optional[str],
        rate: str,
        pitch: str,
    ) -> None:
        import edge_tts

        kwargs = {"rate": rate, "pitch": pitch}
        if voice:
            kwargs["voice"] = voice
        communicate = edge_tts.Communicate(text, **kwargs)
        await communicate.save(output_path)

    def speak(
        self,
        text: str,
        rate: str = NARRATION_RATE,
        pitch: str = NARRATION_PITCH,
        voice: Optional[str] = None,
    ) -> AudioSegment:
        """
        Sintetiza una locución.

        Returns:
            Audio de la locución

        Raises:
            AudioEngineError: si el texto queda vacío o la síntesis falla
        """
        text = clean_text_for_tts(text)
        if not text:
            raise AudioEngineError("Texto vacío después de limpieza")

        fd, output_path = tempfile.mkstemp(prefix="tts_", suffix=".mp3", dir=self.temp_dir)
        os.close(fd)

        @with_retry(max_attempts=self.max_attempts)
        def _synthesize():
            asyncio.run(self._synthesize_async(text, output_path, voice, rate, pitch))

        try:
            _synthesize()
            if os.path.getsize(output_path) == 0:
                raise AudioEngineError("Edge-TTS no devolvió audio")
            return AudioSegment.from_file(output_path, format="mp3")
        except AudioEngineError:
            raise
        except Exception as e:
            logger.error(f"Error en Edge-TTS: {e}")
            raise AudioEngineError(f"Error en Edge-TTS: {e}") from e
        finally:
            try:
                os.remove(output_path)
            except OSError:
                pass
