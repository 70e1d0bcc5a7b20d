import pytest
from PIL import Image

from stretch_video.domain.errors import RenderSkip
from stretch_video.domain.models import Timeline
from stretch_video.video.renderer import (
    FLOOR_HEIGHT,
    BoundRenderer,
    FrameCanvas,
    render_frame,
    render_preview,
)
from stretch_video.video.stream import LiveVideoStream

TL = Timeline()


def _frame(elapsed_ms):
    canvas = FrameCanvas(TL.width, TL.height)
    render_frame(canvas, elapsed_ms, TL)
    return canvas.to_rgb_bytes()


def test_rendering_is_pixel_identical():
    assert _frame(1234) == _frame(1234)


def test_frame_size_is_rgb24():
    assert len(_frame(0)) == TL.width * TL.height * 3


def test_cat_and_cow_frames_differ():
    # 500 ms = vaca, 1500 ms = gato; el fondo cambia poco entre ambos
    assert _frame(500) != _frame(1500)


def test_segments_draw_different_figures():
    assert _frame(20_000) != _frame(35_000)


def test_floor_band_color():
    canvas = FrameCanvas(TL.width, TL.height)
    render_frame(canvas, 0, TL)
    pixel = canvas.image.getpixel((5, TL.height - FLOOR_HEIGHT // 2))
    assert pixel[:3] == (0xDF, 0xF2, 0xE7)


def test_gradient_top_is_white():
    canvas = FrameCanvas(TL.width, TL.height)
    render_frame(canvas, 0, TL)
    assert canvas.image.getpixel((2, 2))[:3] == (255, 255, 255)


def test_released_canvas_raises_render_skip():
    canvas = FrameCanvas(TL.width, TL.height)
    canvas.release()
    assert not canvas.available
    with pytest.raises(RenderSkip):
        render_frame(canvas, 0, TL)


def test_bound_renderer_counts_dropped_frames():
    canvas = FrameCanvas(TL.width, TL.height)
    renderer = BoundRenderer(canvas, TL)
    assert renderer.render_frame(0) is True
    canvas.release()
    assert renderer.render_frame(33) is False
    assert renderer.render_frame(66) is False
    assert renderer.dropped_frames == 2


def test_capture_stream_is_bound_to_canvas():
    canvas = FrameCanvas(TL.width, TL.height)
    stream = canvas.capture_stream(TL.frame_rate, TL.total_frames)
    assert isinstance(stream, LiveVideoStream)
    assert stream.canvas is canvas


def test_render_preview_writes_png(tmp_path):
    path = render_preview(15_000, str(tmp_path / "sub" / "preview.png"))
    with Image.open(path) as image:
        assert image.size == (TL.width, TL.height)
