"""
Encoder en vivo con FFmpeg.
Recibe frames RGB24 por stdin y la mezcla de audio como WAV, y entrega el
contenedor WebM (VP9 + Opus) en chunks a medida que FFmpeg los escribe.
"""

import logging
import subprocess
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..domain.errors import EncoderError, EncoderUnavailable
from ..domain.models import Timeline

logger = logging.getLogger(__name__)

# pareja de codecs -> (encoder de video, encoder de audio, contenedor)
CODEC_PAIRS = {
    "vp9,opus": ("libvpx-vp9", "libopus", "webm"),
    "vp8,vorbis": ("libvpx", "libvorbis", "webm"),
}


@dataclass
class CombinedStream:
    """Video en vivo + stream de audio mezclado, listos para el encoder."""
    video: object
    audio: object

    @property
    def audio_path(self) -> Path:
        if self.audio.path is None:
            raise EncoderError("El stream de audio no está abierto")
        return self.audio.path


class FFmpegEncoder:
    """Encoder de la captura basado en un proceso FFmpeg."""

    def __init__(
        self,
        timeline: Timeline,
        ffmpeg_path: str = "ffmpeg",
        video_bitrate: str = "6M",
        audio_bitrate: str = "128k",
        codec_pair: str = "vp9,opus",
        chunk_size: int = 64 * 1024,
        finalize_timeout: float = 120.0,
    ):
        if codec_pair not in CODEC_PAIRS:
            raise EncoderUnavailable(f"Pareja de codecs desconocida: {codec_pair}")
        self.timeline = timeline
        self.ffmpeg_path = ffmpeg_path
        self.video_bitrate = video_bitrate
        self.audio_bitrate = audio_bitrate
        self.codec_pair = codec_pair
        self.chunk_size = chunk_size
        self.finalize_timeout = finalize_timeout

        self._process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._stderr_reader: Optional[threading.Thread] = None
        self._stderr_tail: deque = deque(maxlen=50)
        self.bytes_out = 0

    @property
    def video_codec(self) -> str:
        return CODEC_PAIRS[self.codec_pair][0]

    @property
    def audio_codec(self) -> str:
        return CODEC_PAIRS[self.codec_pair][1]

    @property
    def container(self) -> str:
        return CODEC_PAIRS[self.codec_pair][2]

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def check_available(self) -> None:
        """
        Verifica que FFmpeg exista y soporte la pareja de codecs.

        Raises:
            EncoderUnavailable: si falta FFmpeg o alguno de los encoders
        """
        try:
            result = subprocess.run(
                [self.ffmpeg_path, "-hide_banner", "-encoders"],
                capture_output=True,
                text=True,
                timeout=15,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise EncoderUnavailable(f"FFmpeg no encontrado ({self.ffmpeg_path})") from e
        except subprocess.TimeoutExpired as e:
            raise EncoderUnavailable("FFmpeg no respondió al listar encoders") from e

        # Cada línea es " V....D libvpx-vp9  libvpx VP9": solo cuenta la columna del nombre
        available = {fields[1] for fields in map(str.split, result.stdout.splitlines()) if len(fields) > 1}
        missing = [codec for codec in (self.video_codec, self.audio_codec) if codec not in available]
        if missing:
            raise EncoderUnavailable(f"FFmpeg no soporta: {', '.join(missing)}")

    def build_command(self, audio_path: str) -> list[str]:
        """Comando FFmpeg: video crudo por stdin + WAV -> contenedor por stdout."""
        tl = self.timeline
        cmd = [
            self.ffmpeg_path, "-y",
            "-hide_banner", "-loglevel", "error",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-s", f"{tl.width}x{tl.height}",
            "-r", str(tl.frame_rate),
            "-i", "pipe:0",
            "-i", str(audio_path),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", self.video_codec,
            "-b:v", self.video_bitrate,
            "-pix_fmt", "yuv420p",
        ]
        if self.video_codec == "libvpx-vp9":
            # Velocidad de encoding cercana a tiempo real
            cmd += ["-deadline", "realtime", "-cpu-used", "8", "-row-mt", "1"]
        cmd += [
            "-c:a", self.audio_codec,
            "-b:a", self.audio_bitrate,
            "-t", f"{tl.total_duration_s:.3f}",
            "-f", self.container,
            "pipe:1",
        ]
        return cmd

    def start(self, combined: CombinedStream, on_chunk: Callable[[bytes], None]) -> None:
        """
        Lanza FFmpeg y conecta el stream de video a su stdin.

        Args:
            combined: Video en vivo + audio mezclado
            on_chunk: Callback que recibe cada chunk del contenedor
        """
        if self._process is not None:
            raise EncoderError("El encoder ya fue iniciado")

        cmd = self.build_command(str(combined.audio_path))
        logger.debug(f"FFmpeg encoder: {' '.join(cmd)}")
        try:
            self._process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise EncoderUnavailable(f"No se pudo lanzar FFmpeg: {e}") from e

        self._reader = threading.Thread(target=self._read_chunks, args=(on_chunk,), daemon=True)
        self._stderr_reader = threading.Thread(target=self._read_stderr, daemon=True)
        self._reader.start()
        self._stderr_reader.start()

        combined.video.attach(self.write_frame)
        logger.info(
            f"Encoder iniciado: {self.video_codec} {self.video_bitrate} + "
            f"{self.audio_codec} {self.audio_bitrate} ({self.container})"
        )

    def _read_chunks(self, on_chunk: Callable[[bytes], None]) -> None:
        stream = self._process.stdout
        while True:
            data = stream.read1(self.chunk_size)
            if not data:
                break
            self.bytes_out += len(data)
            on_chunk(data)

    def _read_stderr(self) -> None:
        for line in self._process.stderr:
            self._stderr_tail.append(line.decode(errors="replace").rstrip())

    def _stderr_text(self) -> str:
        return "\n".join(self._stderr_tail)

    def write_frame(self, frame: bytes) -> None:
        if self._process is None:
            raise EncoderError("El encoder no está iniciado")
        try:
            self._process.stdin.write(frame)
        except (BrokenPipeError, ValueError) as e:
            raise EncoderError(f"FFmpeg cerró la entrada de video: {self._stderr_text()}") from e

    def stop(self) -> None:
        """
        Cierra la entrada y espera a que FFmpeg finalice el contenedor.
        Al volver, todos los chunks ya fueron entregados.

        Raises:
            EncoderError: si FFmpeg termina con error o no finaliza a tiempo
        """
        if self._process is None:
            return
        try:
            self._process.stdin.close()
        except BrokenPipeError:
            pass

        try:
            return_code = self._process.wait(timeout=self.finalize_timeout)
        except subprocess.TimeoutExpired as e:
            self._process.kill()
            raise EncoderError("FFmpeg no finalizó el contenedor a tiempo") from e
        finally:
            self._reader.join(timeout=10)
            self._stderr_reader.join(timeout=10)

        if return_code != 0:
            raise EncoderError(f"FFmpeg falló con código {return_code}: {self._stderr_text()[-2000:]}")
        logger.info(f"Encoder finalizado ({self.bytes_out / 1024 / 1024:.1f} MB)")

    def abort(self) -> None:
        """Mata el proceso sin finalizar (se usa cuando algo falla a mitad)."""
        if self._process is not None and self._process.poll() is None:
            self._process.kill()
            self._process.wait()
