import edge_tts
import pytest

from stretch_video.domain.errors import AudioEngineError
from stretch_video.tts.edge_tts import EdgeTTSEngine, clean_text_for_tts, select_voice
from stretch_video.tts.scheduler import NARRATION_LEAD_MS, NarrationScheduler
from stretch_video.audio.graph import NarrationSink
from stretch_video.director.script import DEFAULT_SCRIPT

from conftest import TEST_SAMPLE_RATE, FakeTTSEngine

VOICES = [
    {"ShortName": "de-DE-KatjaNeural", "Locale": "de-DE", "Gender": "Female"},
    {"ShortName": "en-GB-RyanNeural", "Locale": "en-GB", "Gender": "Male"},
    {"ShortName": "en-US-GuyNeural", "Locale": "en-US", "Gender": "Male"},
    {"ShortName": "en-US-JennyNeural", "Locale": "en-US", "Gender": "Female"},
]


class TestSelectVoice:
    def test_preferred_name_wins(self):
        assert select_voice(VOICES, ["en-GB-RyanNeural"]) == "en-GB-RyanNeural"

    def test_missing_preferred_falls_back_to_us_female(self):
        assert select_voice(VOICES, ["en-US-AriaNeural"]) == "en-US-JennyNeural"

    def test_us_any_gender(self):
        voices = [v for v in VOICES if v["Gender"] == "Male"]
        assert select_voice(voices) == "en-US-GuyNeural"

    def test_any_voice_as_last_resort(self):
        assert select_voice(VOICES[:1]) == "de-DE-KatjaNeural"

    def test_no_voices_means_engine_default(self):
        assert select_voice([]) is None


def test_clean_text_for_tts():
    assert clean_text_for_tts("Breathe **slowly**...  see https://x.y 🙂") == "Breathe slowly. see"


class TestNarrationScheduler:
    def _scheduler(self, engine):
        sink = NarrationSink(engine, TEST_SAMPLE_RATE)
        return NarrationScheduler(DEFAULT_SCRIPT, sink, voice="en-US-AriaNeural"), sink

    def test_one_utterance_per_cue_with_lead(self):
        engine = FakeTTSEngine()
        scheduler, sink = self._scheduler(engine)
        scheduled = scheduler.start()

        assert [item.at_ms for item in scheduled] == [300, 15_300, 30_300]
        assert NARRATION_LEAD_MS == 300
        assert [call["text"] for call in engine.calls] == [cue.narration_text for cue in DEFAULT_SCRIPT.cues]
        assert {(c["rate"], c["pitch"], c["voice"]) for c in engine.calls} == {("-5%", "+10Hz", "en-US-AriaNeural")}
        assert all(item.duration_ms == 400 for item in scheduled)

    def test_failed_cue_is_silent_and_others_continue(self):
        failing = DEFAULT_SCRIPT.cues[1].narration_text
        scheduler, sink = self._scheduler(FakeTTSEngine(fail_texts=[failing]))
        scheduler.start()

        assert len(scheduler.failed) == 1
        assert scheduler.failed[0].cue.title == "Child's Pose"
        assert len(sink.placements()) == 2

    def test_start_twice_raises(self):
        scheduler, _ = self._scheduler(FakeTTSEngine())
        scheduler.start()
        with pytest.raises(AudioEngineError):
            scheduler.start()


class TestEdgeTTSEngine:
    def test_pick_voice_uses_priority(self, monkeypatch):
        async def fake_list_voices():
            return VOICES

        monkeypatch.setattr(edge_tts, "list_voices", fake_list_voices)
        engine = EdgeTTSEngine(preferred_voices=["en-US-AriaNeural"], max_attempts=1)
        assert engine.pick_voice() == "en-US-JennyNeural"

    def test_pick_voice_failure_returns_default(self, monkeypatch):
        async def broken():
            raise ConnectionError("sin red")

        monkeypatch.setattr(edge_tts, "list_voices", broken)
        assert EdgeTTSEngine(max_attempts=1).pick_voice() is None

    def test_speak_empty_text(self):
        with pytest.raises(AudioEngineError):
            EdgeTTSEngine(max_attempts=1).speak("  ** ")

    def test_speak_wraps_service_errors(self, monkeypatch, tmp_path):
        class BrokenCommunicate:
            def __init__(self, text, **kwargs):
                self.kwargs = kwargs

            async def save(self, path):
                raise ConnectionError("503")

        monkeypatch.setattr(edge_tts, "Communicate", BrokenCommunicate)
        engine = EdgeTTSEngine(temp_dir=str(tmp_path), max_attempts=1)
        with pytest.raises(AudioEngineError, match="503"):
            engine.speak("Hello")
        assert list(tmp_path.iterdir()) == []

    def test_speak_empty_audio(self, monkeypatch, tmp_path):
        seen = {}

        class SilentCommunicate:
            def __init__(self, text, **kwargs):
                seen.update(kwargs)

            async def save(self, path):
                return None

        monkeypatch.setattr(edge_tts, "Communicate", SilentCommunicate)
        engine = EdgeTTSEngine(temp_dir=str(tmp_path), max_attempts=1)
        with pytest.raises(AudioEngineError, match="no devolvió audio"):
            engine.speak("Hello", voice="en-US-JennyNeural")
        assert seen == {"rate": "-5%", "pitch": "+10Hz", "voice": "en-US-JennyNeural"}
