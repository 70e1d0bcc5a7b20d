import pytest

from stretch_video.director.script import DEFAULT_SCRIPT, DEFAULT_TIMELINE, ScriptParser
from stretch_video.domain.models import Cue, Timeline


def test_default_script_has_three_cues():
    assert [cue.start_time_ms for cue in DEFAULT_SCRIPT.cues] == [0, 15_000, 30_000]
    assert DEFAULT_SCRIPT.titles == ["Cat-Cow Pose", "Child's Pose", "Seated Forward Bend"]
    assert DEFAULT_SCRIPT.cues[0].narration_text.startswith("Welcome. Let's begin with Cat-Cow.")


def test_default_timeline_constants():
    assert DEFAULT_TIMELINE.total_duration_ms == 45_000
    assert DEFAULT_TIMELINE.frame_rate == 30
    assert (DEFAULT_TIMELINE.width, DEFAULT_TIMELINE.height) == (1080, 1920)
    assert DEFAULT_TIMELINE.total_frames == 1350
    assert DEFAULT_TIMELINE.segment_length_ms == 15_000


def test_script_is_immutable():
    with pytest.raises(Exception):
        DEFAULT_SCRIPT.cues[0].title = "Otro"


def test_parse_json_string():
    script = ScriptParser().parse(
        '{"cues": [{"start_time_ms": 0, "title": "A", "narration_text": "a"},'
        ' {"start_time_ms": 10, "title": "B", "narration_text": "b"}]}'
    )
    assert script.titles == ["A", "B"]


@pytest.mark.parametrize("cues", [
    [],
    [{"start_time_ms": 5, "title": "A", "narration_text": "a"}],
    [
        {"start_time_ms": 0, "title": "A", "narration_text": "a"},
        {"start_time_ms": 0, "title": "B", "narration_text": "b"},
    ],
    [
        {"start_time_ms": 0, "title": "A", "narration_text": "a"},
        {"start_time_ms": 200, "title": "B", "narration_text": "b"},
        {"start_time_ms": 100, "title": "C", "narration_text": "c"},
    ],
])
def test_rejects_invalid_order(cues):
    with pytest.raises(ValueError):
        ScriptParser().parse({"cues": cues})


def test_rejects_bad_json():
    with pytest.raises(ValueError, match="JSON"):
        ScriptParser().parse("{not json")


def test_check_fits():
    parser = ScriptParser()
    parser.check_fits(DEFAULT_SCRIPT, DEFAULT_TIMELINE)
    with pytest.raises(ValueError):
        parser.check_fits(DEFAULT_SCRIPT, Timeline(total_duration_ms=30_000))


def test_cue_rejects_negative_start():
    with pytest.raises(ValueError):
        Cue(start_time_ms=-1, title="A", narration_text="a")
