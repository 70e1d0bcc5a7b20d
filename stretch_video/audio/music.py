"""
Música de fondo sintetizada.
Un pad de acordes suaves construido con osciladores y ganancias de pydub.
"""

import logging
import math
from functools import cached_property
from typing import Optional, Sequence

from pydub import AudioSegment
from pydub.generators import Sine, Triangle
from pydub.utils import ratio_to_db

logger = logging.getLogger(__name__)

# La menor - Sol - Fa - Sol: progresión tranquila para estiramientos
PAD_CHORDS = (
    (220.00, 261.63, 329.63),
    (196.00, 246.94, 293.66),
    (174.61, 220.00, 261.63),
    (196.00, 246.94, 293.66),
)
CHORD_MS = 4000
CHORD_FADE_MS = 600
VOICE_GAIN = 0.18
BELL_GAIN = 0.08
BELL_MS = 900


class Oscillator:
    """Oscilador básico (seno o triángulo)."""

    WAVEFORMS = {"sine": Sine, "triangle": Triangle}

    def __init__(self, frequency: float, waveform: str = "sine"):
        if waveform not in self.WAVEFORMS:
            raise ValueError(f"Forma de onda no soportada: {waveform}")
        self.frequency = frequency
        self.waveform = waveform

    def render(self, duration_ms: int, sample_rate: int) -> AudioSegment:
        generator = self.WAVEFORMS[self.waveform](self.frequency, sample_rate=sample_rate)
        return generator.to_audio_segment(duration=duration_ms)


class Gain:
    """Ganancia lineal (1.0 = sin cambio)."""

    def __init__(self, value: float):
        self.value = value

    def apply(self, segment: AudioSegment) -> AudioSegment:
        if self.value <= 0:
            return AudioSegment.silent(duration=len(segment), frame_rate=segment.frame_rate)
        if self.value == 1.0:
            return segment
        return segment.apply_gain(ratio_to_db(self.value))


class BackgroundMusic:
    """
    Generador de música sin duración fija: repite el patrón de acordes
    tantas veces como haga falta.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        chords: Sequence[Sequence[float]] = PAD_CHORDS,
        chord_ms: int = CHORD_MS,
    ):
        self.sample_rate = sample_rate
        self.chords = chords
        self.chord_ms = chord_ms

    def _chord(self, frequencies: Sequence[float]) -> AudioSegment:
        voice_gain = Gain(VOICE_GAIN)
        chord = AudioSegment.silent(duration=self.chord_ms, frame_rate=self.sample_rate)
        for freq in frequencies:
            voice = Oscillator(freq, "sine").render(self.chord_ms, self.sample_rate)
            chord = chord.overlay(voice_gain.apply(voice))

        # Campanita una octava arriba de la fundamental
        bell = Oscillator(frequencies[0] * 2, "triangle").render(BELL_MS, self.sample_rate)
        bell = Gain(BELL_GAIN).apply(bell).fade_out(BELL_MS)
        chord = chord.overlay(bell)

        return chord.fade_in(CHORD_FADE_MS).fade_out(CHORD_FADE_MS)

    @cached_property
    def pattern(self) -> AudioSegment:
        """Un ciclo completo de la progresión."""
        logger.info(f"Sintetizando patrón de música ({len(self.chords)} acordes, {self.sample_rate} Hz)")
        pattern = AudioSegment.empty()
        for chord in self.chords:
            pattern += self._chord(chord)
        return pattern

    def render(self, duration_ms: int, offset_ms: Optional[int] = 0) -> AudioSegment:
        """
        Devuelve `duration_ms` de música empezando en `offset_ms` del ciclo.
        """
        if duration_ms <= 0:
            return AudioSegment.empty()
        cycle = self.pattern
        offset = (offset_ms or 0) % len(cycle)
        loops = math.ceil((offset + duration_ms) / len(cycle))
        return (cycle * loops)[offset:offset + duration_ms]
