"""
Configuración del generador.

Orden de prioridad (de menor a mayor):
    1. Valores por defecto del modelo
    2. config/config.yaml (sección `stretch`)
    3. Variables de entorno (.env incluido)
    4. Argumentos explícitos (CLI)
"""

import logging
import os
from typing import Any, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .capture.encoder import CODEC_PAIRS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./config/config.yaml"

# variable de entorno -> campo de Settings
ENV_OVERRIDES = {
    "FFMPEG_PATH": "ffmpeg_path",
    "STRETCH_OUTPUT_DIR": "output_dir",
    "STRETCH_TTS_VOICE": "tts_voices",
    "STRETCH_TRANSCODE_TIMEOUT": "transcode_timeout",
}


class Settings(BaseModel):
    """Parámetros de una corrida."""

    output_dir: str = "./output"
    temp_dir: Optional[str] = None
    ffmpeg_path: str = "ffmpeg"

    # Captura
    codec_pair: str = "vp9,opus"
    video_bitrate: str = "6M"
    audio_bitrate: str = "128k"
    realtime: bool = False

    # Audio
    music: bool = True
    narration: bool = True
    sample_rate: int = Field(44100, gt=0)
    tts_voices: List[str] = Field(default_factory=list)
    tts_max_attempts: int = Field(3, ge=1)

    # Transcodificación
    transcode: bool = True
    transcode_timeout: float = Field(600, gt=0)
    transcode_preset: str = "veryfast"
    transcode_crf: int = Field(23, ge=0, le=51)

    @field_validator("codec_pair")
    @classmethod
    def _known_codec_pair(cls, value: str) -> str:
        if value not in CODEC_PAIRS:
            raise ValueError(f"Pareja de codecs no soportada: {value} (opciones: {', '.join(CODEC_PAIRS)})")
        return value

    @field_validator("tts_voices", mode="before")
    @classmethod
    def _split_voices(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [name.strip() for name in value.split(",") if name.strip()]
        return value


def _load_yaml(path: str) -> dict:
    """Carga la sección `stretch` del YAML."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
            return config.get("stretch", {}) or {}
    except FileNotFoundError:
        logger.warning(f"Archivo de configuración no encontrado: {path}")
        return {}


def load_settings(config_path: str = DEFAULT_CONFIG_PATH, **overrides) -> Settings:
    """
    Arma la configuración combinando YAML, entorno y argumentos.

    Args:
        config_path: Ruta al YAML
        **overrides: Valores explícitos; los None se ignoran

    Returns:
        Settings validado

    Raises:
        pydantic.ValidationError: si algún valor es inválido
    """
    load_dotenv()

    data = _load_yaml(config_path)

    for env_name, field_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[field_name] = value

    data.update({key: value for key, value in overrides.items() if value is not None})
    return Settings(**data)
