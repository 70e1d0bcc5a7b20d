from types import SimpleNamespace

import pytest

from stretch_video.capture.encoder import CombinedStream, FFmpegEncoder
from stretch_video.domain.errors import EncoderError, EncoderUnavailable
from stretch_video.domain.models import Timeline

from conftest import requires_posix

TL = Timeline()

ENCODERS_LISTING = """
echo " V....D libvpx-vp9           libvpx VP9"
echo " A....D libopus              libopus Opus"
"""


class SinkVideo:
    def __init__(self):
        self.sink = None

    def attach(self, sink):
        self.sink = sink


@pytest.fixture
def combined(tmp_path):
    wav = tmp_path / "mix.wav"
    wav.write_bytes(b"RIFF")
    return CombinedStream(video=SinkVideo(), audio=SimpleNamespace(path=wav))


def test_build_command_vp9_opus(tmp_path):
    encoder = FFmpegEncoder(TL, ffmpeg_path="ffmpeg")
    cmd = encoder.build_command(str(tmp_path / "mix.wav"))
    assert cmd[cmd.index("-s") + 1] == "1080x1920"
    assert cmd[cmd.index("-r") + 1] == "30"
    assert cmd[cmd.index("-c:v") + 1] == "libvpx-vp9"
    assert cmd[cmd.index("-b:v") + 1] == "6M"
    assert cmd[cmd.index("-c:a") + 1] == "libopus"
    assert cmd[cmd.index("-b:a") + 1] == "128k"
    assert cmd[cmd.index("-t") + 1] == "45.000"
    assert cmd[-3:] == ["-f", "webm", "pipe:1"]


def test_unknown_codec_pair():
    with pytest.raises(EncoderUnavailable):
        FFmpegEncoder(TL, codec_pair="h265,flac")


def test_missing_binary(tmp_path):
    with pytest.raises(EncoderUnavailable):
        FFmpegEncoder(TL, ffmpeg_path=str(tmp_path / "nope")).check_available()


def test_audio_stream_must_be_open():
    combined = CombinedStream(video=SinkVideo(), audio=SimpleNamespace(path=None))
    with pytest.raises(EncoderError):
        combined.audio_path


@requires_posix
def test_check_available(fake_ffmpeg):
    FFmpegEncoder(TL, ffmpeg_path=fake_ffmpeg(ENCODERS_LISTING)).check_available()


@requires_posix
def test_check_available_missing_codec(fake_ffmpeg):
    ffmpeg = fake_ffmpeg('echo " V....D libvpx-vp9 libvpx VP9"\n')
    with pytest.raises(EncoderUnavailable, match="libopus"):
        FFmpegEncoder(TL, ffmpeg_path=ffmpeg).check_available()


@requires_posix
def test_check_available_matches_whole_encoder_name(fake_ffmpeg):
    ffmpeg = fake_ffmpeg(
        'echo " V....D libvpx-vp9           libvpx VP9 (codec vp9)"\n'
        'echo " A....D libvorbis            libvorbis (codec vorbis)"\n'
    )
    with pytest.raises(EncoderUnavailable, match="libvpx$"):
        FFmpegEncoder(TL, ffmpeg_path=ffmpeg, codec_pair="vp8,vorbis").check_available()


@requires_posix
def test_chunks_are_delivered_through_callback(fake_ffmpeg, combined):
    ffmpeg = fake_ffmpeg("cat > /dev/null\nprintf 'WEBM'\nprintf 'DATA'\n")
    encoder = FFmpegEncoder(TL, ffmpeg_path=ffmpeg)
    chunks = []
    encoder.start(combined, on_chunk=chunks.append)

    assert combined.video.sink == encoder.write_frame
    for _ in range(3):
        combined.video.sink(b"\x00" * 12)
    encoder.stop()

    assert b"".join(chunks) == b"WEBMDATA"
    assert encoder.bytes_out == 8
    assert not encoder.running


@requires_posix
def test_start_twice_raises(fake_ffmpeg, combined):
    encoder = FFmpegEncoder(TL, ffmpeg_path=fake_ffmpeg("cat > /dev/null\n"))
    encoder.start(combined, on_chunk=lambda chunk: None)
    with pytest.raises(EncoderError):
        encoder.start(combined, on_chunk=lambda chunk: None)
    encoder.stop()


@requires_posix
def test_nonzero_exit_on_stop(fake_ffmpeg, combined):
    ffmpeg = fake_ffmpeg('cat > /dev/null\necho "Error while encoding" >&2\nexit 1\n')
    encoder = FFmpegEncoder(TL, ffmpeg_path=ffmpeg)
    encoder.start(combined, on_chunk=lambda chunk: None)
    with pytest.raises(EncoderError, match="Error while encoding"):
        encoder.stop()


@requires_posix
def test_abort_kills_process(fake_ffmpeg, combined):
    encoder = FFmpegEncoder(TL, ffmpeg_path=fake_ffmpeg("exec sleep 30\n"))
    encoder.start(combined, on_chunk=lambda chunk: None)
    assert encoder.running
    encoder.abort()
    assert not encoder.running


def test_write_before_start():
    with pytest.raises(EncoderError):
        FFmpegEncoder(TL).write_frame(b"\x00")
