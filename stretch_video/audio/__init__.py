"""Módulo de audio: música sintetizada y grafo de mezcla"""

from .music import BackgroundMusic, Oscillator, Gain
from .graph import (
    AudioGraph,
    AudioNode,
    MixNode,
    MusicSource,
    GainNode,
    NarrationSink,
    DestinationStream,
    build_audio_graph,
)

__all__ = [
    "BackgroundMusic",
    "Oscillator",
    "Gain",
    "AudioGraph",
    "AudioNode",
    "MixNode",
    "MusicSource",
    "GainNode",
    "NarrationSink",
    "DestinationStream",
    "build_audio_graph",
]
