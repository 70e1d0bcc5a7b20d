"""
Grafo de audio de la sesión.
Música y narración entran a un nodo de mezcla que alimenta el stream de destino
que consume el encoder.

    MusicSource -> GainNode(0.4) --\\
                                    MixNode -> DestinationStream
    NarrationSink -----------------/
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from pydub import AudioSegment

from ..domain.errors import AudioEngineError
from ..domain.models import Timeline
from .music import BackgroundMusic, Gain

logger = logging.getLogger(__name__)

MUSIC_GAIN = 0.4
MUSIC_START_MS = 100
SAMPLE_RATE = 44100
CHANNELS = 2


class AudioNode:
    """Nodo del grafo. `render` devuelve el audio del nodo sobre la línea de tiempo."""

    name = "node"

    def __init__(self, sample_rate: int = SAMPLE_RATE):
        self.sample_rate = sample_rate
        self.inputs: List["AudioNode"] = []

    def connect(self, destination: "AudioNode") -> "AudioNode":
        """Conecta la salida de este nodo a la entrada de `destination`."""
        destination.inputs.append(self)
        return destination

    def _silence(self, duration_ms: int) -> AudioSegment:
        return AudioSegment.silent(duration=duration_ms, frame_rate=self.sample_rate)

    def _mix_inputs(self, duration_ms: int) -> AudioSegment:
        mixed = self._silence(duration_ms)
        for node in self.inputs:
            mixed = mixed.overlay(node.render(duration_ms))
        return mixed

    def render(self, duration_ms: int) -> AudioSegment:
        return self._mix_inputs(duration_ms)


class MixNode(AudioNode):
    """Suma todas sus entradas."""

    name = "mix"


class MusicSource(AudioNode):
    """Fuente de música: se arranca una vez y se detiene una vez."""

    name = "music"

    def __init__(self, music: BackgroundMusic, sample_rate: int = SAMPLE_RATE):
        super().__init__(sample_rate)
        self.music = music
        self.start_ms: Optional[int] = None
        self.stopped = False

    def start(self, at_ms: int = 0) -> None:
        if self.start_ms is not None:
            raise AudioEngineError("La música ya fue iniciada; no se puede reiniciar")
        self.start_ms = at_ms

    def stop(self) -> None:
        self.stopped = True

    def render(self, duration_ms: int) -> AudioSegment:
        if self.start_ms is None:
            return self._silence(duration_ms)
        lead = min(self.start_ms, duration_ms)
        return self._silence(lead) + self.music.render(duration_ms - lead)


class GainNode(AudioNode):
    name = "gain"

    def __init__(self, value: float, sample_rate: int = SAMPLE_RATE):
        super().__init__(sample_rate)
        self.gain = Gain(value)

    def render(self, duration_ms: int) -> AudioSegment:
        return self.gain.apply(self._mix_inputs(duration_ms))


class NarrationSink(AudioNode):
    """
    Motor de narración dentro del grafo.

    Las locuciones se encolan como en un sintetizador de voz: ninguna empieza
    antes de que termine la anterior.
    """

    name = "narration"

    def __init__(self, engine, sample_rate: int = SAMPLE_RATE):
        super().__init__(sample_rate)
        self.engine = engine
        self._requests: List[Tuple[int, AudioSegment]] = []

    def speak(
        self,
        text: str,
        at_ms: int,
        rate: str,
        pitch: str,
        voice: Optional[str] = None,
    ) -> int:
        """
        Sintetiza `text` y lo programa en `at_ms`.

        Returns:
            Duración de la locución en ms

        Raises:
            AudioEngineError: si el motor TTS no pudo sintetizar
        """
        if self.engine is None:
            raise AudioEngineError("No hay motor de narración configurado")
        try:
            utterance = self.engine.speak(text, rate=rate, pitch=pitch, voice=voice)
        except AudioEngineError:
            raise
        except Exception as e:
            raise AudioEngineError(f"Error sintetizando narración: {e}") from e

        self._requests.append((at_ms, utterance))
        self._requests.sort(key=lambda item: item[0])
        return len(utterance)

    def placements(self) -> List[Tuple[int, int]]:
        """Intervalos (inicio, fin) en ms de cada locución tras aplicar la cola."""
        result = []
        cursor = 0
        for at_ms, utterance in self._requests:
            start = max(at_ms, cursor)
            end = start + len(utterance)
            result.append((start, end))
            cursor = end
        return result

    def render(self, duration_ms: int) -> AudioSegment:
        track = self._silence(duration_ms)
        for (start, _), (_, utterance) in zip(self.placements(), self._requests):
            if start >= duration_ms:
                logger.warning(f"Locución en {start}ms queda fuera del video; se descarta")
                continue
            track = track.overlay(utterance, position=start)
        return track


class DestinationStream(AudioNode):
    """
    Stream de salida del grafo: la mezcla final como WAV estéreo,
    listo para que el encoder lo lea.
    """

    name = "destination"

    def __init__(self, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS):
        super().__init__(sample_rate)
        self.channels = channels
        self.path: Optional[Path] = None
        self._owns_file = False

    def _export(self, segment: AudioSegment, directory: Optional[str]) -> Path:
        segment = segment.set_frame_rate(self.sample_rate).set_channels(self.channels)
        fd, path = tempfile.mkstemp(prefix="mix_", suffix=".wav", dir=directory)
        os.close(fd)
        segment.export(path, format="wav")
        self.path = Path(path)
        self._owns_file = True
        return self.path

    def open(self, duration_ms: int, directory: Optional[str] = None) -> Path:
        """
        Renderiza la mezcla completa.

        Raises:
            AudioEngineError: si falla la síntesis o la exportación
        """
        try:
            mixed = self._mix_inputs(duration_ms)
            return self._export(mixed, directory)
        except Exception as e:
            raise AudioEngineError(f"Error renderizando mezcla de audio: {e}") from e

    def open_silent(self, duration_ms: int, directory: Optional[str] = None) -> Path:
        """Pista muda del largo del video (fallback cuando el audio falla)."""
        return self._export(self._silence(duration_ms), directory)

    def close(self) -> None:
        if self.path is not None and self._owns_file:
            try:
                self.path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"No se pudo borrar {self.path}: {e}")
        self.path = None
        self._owns_file = False


class AudioGraph:
    """Grafo completo. Se construye una vez por sesión y se desmonta una sola vez."""

    def __init__(
        self,
        music: Optional[MusicSource],
        narration: NarrationSink,
        mix: MixNode,
        destination: DestinationStream,
        timeline: Timeline,
    ):
        self.music = music
        self.narration = narration
        self.mix = mix
        self.destination = destination
        self.timeline = timeline
        self.started = False
        self.torn_down = False

    def start(self, music_at_ms: int = MUSIC_START_MS) -> None:
        """Arranca las fuentes. Llamar más de una vez es un error."""
        if self.started:
            raise AudioEngineError("El grafo de audio ya fue iniciado")
        self.started = True
        if self.music is not None:
            self.music.start(music_at_ms)

    def open_destination(self, directory: Optional[str] = None) -> Path:
        return self.destination.open(self.timeline.total_duration_ms, directory)

    def open_silent_destination(self, directory: Optional[str] = None) -> Path:
        return self.destination.open_silent(self.timeline.total_duration_ms, directory)

    def stop(self) -> bool:
        """
        Detiene y libera todos los nodos.

        Returns:
            True si esta llamada desmontó el grafo, False si ya estaba desmontado
        """
        if self.torn_down:
            logger.debug("Grafo de audio ya desmontado")
            return False
        if self.music is not None:
            self.music.stop()
        self.destination.close()
        self.torn_down = True
        logger.info("Grafo de audio detenido")
        return True


def build_audio_graph(
    timeline: Timeline,
    tts_engine=None,
    sample_rate: int = SAMPLE_RATE,
    music_gain: float = MUSIC_GAIN,
    with_music: bool = True,
) -> AudioGraph:
    """
    Construye el grafo música + narración -> mezcla -> destino.

    Args:
        timeline: Constantes del video
        tts_engine: Motor TTS para la narración (None = sin narración)
        sample_rate: Frecuencia de muestreo del grafo
        music_gain: Atenuación de la música en la mezcla
        with_music: Si incluir la música de fondo

    Returns:
        AudioGraph listo para arrancar
    """
    mix = MixNode(sample_rate)

    music = None
    if with_music:
        music = MusicSource(BackgroundMusic(sample_rate=sample_rate), sample_rate)
        music.connect(GainNode(music_gain, sample_rate)).connect(mix)

    narration = NarrationSink(tts_engine, sample_rate)
    narration.connect(mix)

    destination = DestinationStream(sample_rate)
    mix.connect(destination)

    return AudioGraph(music, narration, mix, destination, timeline)
