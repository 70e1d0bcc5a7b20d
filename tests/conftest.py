"""
Fixtures compartidas.

Los colaboradores externos (FFmpeg, Edge-TTS) se reemplazan por fakes para
que la máquina de estados se pueda probar sin red ni binarios.
"""
import shutil
import stat
import sys
from pathlib import Path

import pytest
from pydub.generators import Sine

from stretch_video.director.script import ScriptParser
from stretch_video.domain.errors import AudioEngineError, EncoderUnavailable
from stretch_video.domain.models import Timeline

TEST_SAMPLE_RATE = 8000

requires_posix = pytest.mark.skipif(sys.platform == "win32", reason="usa scripts de shell como FFmpeg falso")


def has_ffmpeg() -> bool:
    return shutil.which("ffmpeg") is not None


requires_ffmpeg = pytest.mark.skipif(not has_ffmpeg(), reason="FFmpeg no está instalado")


class FakeTTSEngine:
    """Devuelve un tono de `utterance_ms` por cada locución."""

    def __init__(self, utterance_ms: int = 400, fail_texts=(), voice="en-US-AriaNeural"):
        self.utterance_ms = utterance_ms
        self.fail_texts = set(fail_texts)
        self.voice = voice
        self.calls = []

    def pick_voice(self):
        return self.voice

    def speak(self, text, rate, pitch, voice=None):
        self.calls.append({"text": text, "rate": rate, "pitch": pitch, "voice": voice})
        if text in self.fail_texts:
            raise AudioEngineError("síntesis falló")
        return Sine(440, sample_rate=TEST_SAMPLE_RATE).to_audio_segment(duration=self.utterance_ms)


class FakeEncoder:
    """Cuenta los frames recibidos y entrega un chunk por frame."""

    def __init__(self, available: bool = True):
        self.available = available
        self.frames = 0
        self.started = False
        self.stopped = False
        self.aborted = False
        self.audio_existed_at_start = None
        self._on_chunk = None

    def check_available(self):
        if not self.available:
            raise EncoderUnavailable("FFmpeg no encontrado (fake)")

    def start(self, combined, on_chunk):
        self.started = True
        self.audio_existed_at_start = Path(combined.audio_path).exists()
        self._on_chunk = on_chunk
        self._on_chunk(b"HEAD")
        combined.video.attach(self.write_frame)

    def write_frame(self, frame):
        self.frames += 1
        self._on_chunk(b"F")

    def stop(self):
        self.stopped = True
        self._on_chunk(b"TAIL")

    def abort(self):
        self.aborted = True


class FakeTranscoder:
    """Reporta progreso parcial y luego devuelve un MP4 falso o lanza `error`."""

    def __init__(self, error=None, fractions=(0.25, 0.5), gate=None):
        self.error = error
        self.fractions = fractions
        self.gate = gate
        self.calls = 0
        self.received = None

    def convert(self, container, on_progress, cancel_token=None):
        self.calls += 1
        self.received = container
        if self.gate is not None:
            self.gate.wait(10)
        for fraction in self.fractions:
            on_progress(fraction)
        if self.error is not None:
            raise self.error
        on_progress(1.0)
        return b"MP4:" + container[:4]


@pytest.fixture
def timeline():
    """Video corto de tamaño real: 45 frames."""
    return Timeline(total_duration_ms=1500)


@pytest.fixture
def short_script():
    return ScriptParser().parse({
        "cues": [
            {"start_time_ms": 0, "title": "Cat-Cow Pose", "narration_text": "Inhale and arch."},
            {"start_time_ms": 500, "title": "Child's Pose", "narration_text": "Hips to heels."},
            {"start_time_ms": 1000, "title": "Seated Forward Bend", "narration_text": "Fold forward."},
        ]
    })


@pytest.fixture
def fake_tts():
    return FakeTTSEngine()


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def fake_transcoder():
    return FakeTranscoder()


@pytest.fixture
def fake_ffmpeg(tmp_path):
    """Crea un ejecutable de shell que hace de FFmpeg."""

    def _make(body: str, name: str = "ffmpeg") -> str:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body)
        path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    for name in ("FFMPEG_PATH", "STRETCH_OUTPUT_DIR", "STRETCH_TTS_VOICE", "STRETCH_TRANSCODE_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
