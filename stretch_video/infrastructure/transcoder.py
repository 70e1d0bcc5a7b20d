"""
Transcodificador post-captura.

Convierte el WebM capturado a MP4 (H.264 + AAC) con:
- Progreso vía -progress pipe:1
- Tiempo máximo con kill al grupo de procesos
- Cancelación cooperativa
"""

import logging
import os
import re
import signal
import subprocess
import tempfile
import threading
import time
from collections import deque
from pathlib import Path
from typing import Callable, Optional

from ..domain.errors import SessionCancelled, TranscodeError, TranscodeTimeout

logger = logging.getLogger(__name__)

TIME_US_PATTERN = re.compile(r"out_time_us=(\d+)")
TIME_MS_PATTERN = re.compile(r"out_time_ms=(\d+)")
TIME_STR_PATTERN = re.compile(r"out_time=(\d+):(\d+):(\d+)\.(\d+)")
PROGRESS_PATTERN = re.compile(r"progress=(\w+)")

CANCEL_POLL_SECONDS = 0.2


def parse_progress_time(line: str) -> Optional[int]:
    """
    Extrae el tiempo de salida (ms) de una línea de progreso de FFmpeg.

    Prefiere out_time_us, luego out_time_ms (que pese al nombre también
    viene en microsegundos) y por último out_time HH:MM:SS.micro.
    """
    match = TIME_US_PATTERN.search(line)
    if match:
        return int(match.group(1)) // 1000

    match = TIME_MS_PATTERN.search(line)
    if match:
        return int(match.group(1)) // 1000

    match = TIME_STR_PATTERN.search(line)
    if match:
        hours, minutes, seconds = (int(match.group(i)) for i in (1, 2, 3))
        micro = int(match.group(4).ljust(6, "0")[:6])
        return hours * 3_600_000 + minutes * 60_000 + seconds * 1000 + micro // 1000

    return None


def _kill_process_group(process: subprocess.Popen) -> None:
    try:
        os.killpg(os.getpgid(process.pid), signal.SIGKILL)
    except ProcessLookupError:
        logger.debug("El proceso ya había terminado")
    except OSError as e:
        logger.warning(f"Error matando grupo de procesos: {e}")
        process.kill()


class FFmpegTranscoder:
    """Convierte el contenedor capturado a un formato de entrega compatible."""

    def __init__(
        self,
        total_duration_ms: int,
        ffmpeg_path: str = "ffmpeg",
        timeout_seconds: float = 600,
        temp_dir: Optional[str] = None,
        preset: str = "veryfast",
        crf: int = 23,
        audio_bitrate: str = "128k",
    ):
        self.total_duration_ms = total_duration_ms
        self.ffmpeg_path = ffmpeg_path
        self.timeout_seconds = timeout_seconds
        self.temp_dir = temp_dir
        self.preset = preset
        self.crf = crf
        self.audio_bitrate = audio_bitrate

    def build_command(self, input_path: str, output_path: str) -> list[str]:
        return [
            self.ffmpeg_path, "-y",
            "-hide_banner", "-loglevel", "error",
            "-i", input_path,
            "-c:v", "libx264",
            "-preset", self.preset,
            "-crf", str(self.crf),
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-b:a", self.audio_bitrate,
            "-movflags", "+faststart",
            output_path,
            "-progress", "pipe:1",
            "-nostats",
        ]

    def convert(
        self,
        container: bytes,
        on_progress: Callable[[float], None],
        cancel_token=None,
    ) -> bytes:
        """
        Transcodifica el contenedor.

        Args:
            container: WebM capturado
            on_progress: Callback con el progreso como fracción [0, 1]
            cancel_token: Token opcional de cancelación

        Returns:
            Bytes del MP4

        Raises:
            TranscodeError: si la conversión falla
            TranscodeTimeout: si supera el tiempo máximo
            SessionCancelled: si se canceló la sesión
        """
        if not container:
            raise TranscodeError("El contenedor capturado está vacío")

        try:
            with tempfile.TemporaryDirectory(prefix="transcode_", dir=self.temp_dir) as workdir:
                input_path = Path(workdir) / "capture.webm"
                output_path = Path(workdir) / "output.mp4"
                input_path.write_bytes(container)

                cmd = self.build_command(str(input_path), str(output_path))
                self._run(cmd, on_progress, cancel_token)

                if not output_path.exists() or output_path.stat().st_size == 0:
                    raise TranscodeError("FFmpeg no generó el MP4")
                return output_path.read_bytes()
        except OSError as e:
            # disco lleno, temp_dir inexistente o sin permisos
            raise TranscodeError(f"Error de archivos durante la transcodificación: {e}") from e

    def _run(self, cmd: list[str], on_progress: Callable[[float], None], cancel_token) -> None:
        logger.info(f"Transcodificando (timeout={self.timeout_seconds}s)")
        logger.debug(f"FFmpeg transcode: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                universal_newlines=True,
                start_new_session=True,
            )
        except OSError as e:
            raise TranscodeError(f"No se pudo lanzar FFmpeg: {e}") from e

        stderr_tail: deque = deque(maxlen=40)
        stderr_reader = threading.Thread(
            target=lambda: stderr_tail.extend(line.rstrip() for line in process.stderr),
            daemon=True,
        )
        stderr_reader.start()

        timed_out = threading.Event()

        def _on_deadline():
            timed_out.set()
            logger.warning(f"Transcodificación superó {self.timeout_seconds}s, matando FFmpeg")
            _kill_process_group(process)

        watchdog = threading.Timer(self.timeout_seconds, _on_deadline)
        watchdog.daemon = True
        watchdog.start()

        # La cancelación se revisa también cuando FFmpeg no imprime nada
        cancelled = threading.Event()
        finished = threading.Event()

        def _watch_cancel():
            while not finished.wait(CANCEL_POLL_SECONDS):
                if cancel_token.cancelled:
                    cancelled.set()
                    logger.warning("Transcodificación cancelada, matando FFmpeg")
                    _kill_process_group(process)
                    return

        if cancel_token is not None:
            threading.Thread(target=_watch_cancel, daemon=True).start()

        start_time = time.time()
        last_fraction = 0.0
        try:
            for line in process.stdout:
                if cancel_token is not None and cancel_token.cancelled:
                    cancelled.set()
                    _kill_process_group(process)
                    break

                progress_match = PROGRESS_PATTERN.search(line)
                if progress_match and progress_match.group(1) == "end":
                    break

                current_ms = parse_progress_time(line)
                if current_ms is not None and self.total_duration_ms > 0:
                    fraction = min(0.99, current_ms / self.total_duration_ms)
                    if fraction > last_fraction:
                        last_fraction = fraction
                        on_progress(fraction)

            return_code = process.wait()
        finally:
            finished.set()
            watchdog.cancel()
            stderr_reader.join(timeout=5)

        if cancelled.is_set():
            raise SessionCancelled("Transcodificación cancelada")
        if timed_out.is_set():
            raise TranscodeTimeout(f"La transcodificación superó {self.timeout_seconds}s")
        if return_code != 0:
            raise TranscodeError(f"FFmpeg falló con código {return_code}: {' | '.join(stderr_tail)[-2000:]}")

        on_progress(1.0)
        logger.info(f"Transcodificación completada en {time.time() - start_time:.1f}s")
