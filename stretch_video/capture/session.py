"""
Sesión de captura.

Máquina de estados de una corrida completa:

    IDLE -> PREPARING -> RECORDING -> STOPPING -> TRANSCODING -> DONE
                                                              -> FAILED
                                                              -> CANCELLED

Una sesión se usa una sola vez. El loop de render, la narración y la mezcla
de audio comparten el origen del reloj de sesión.
"""

import logging
import math
import threading
from typing import Callable, List, Optional

from ..audio.graph import MUSIC_START_MS, SAMPLE_RATE, AudioGraph, build_audio_graph
from ..director.script import DEFAULT_SCRIPT, DEFAULT_TIMELINE
from ..domain.errors import (
    AudioEngineError,
    EncoderError,
    EncoderUnavailable,
    SessionBusyError,
    SessionCancelled,
    StretchVideoError,
    TranscodeError,
)
from ..domain.models import SceneScript, SessionArtifacts, SessionState, Timeline
from ..tts.scheduler import NarrationScheduler
from ..video.renderer import BoundRenderer, FrameCanvas
from .clock import CancelToken, FrameClock, SessionClock
from .encoder import CombinedStream

logger = logging.getLogger(__name__)

STATUS_IDLE = "Inactivo"
STATUS_PREPARING = "Preparando..."
STATUS_STOPPING = "Finalizando grabación..."
STATUS_TRANSCODING = "Transcodificando a MP4 (puede tardar ~30-60s)..."
STATUS_DONE = "Listo"
STATUS_DONE_NO_MP4 = "Listo (sin MP4)"
STATUS_TRANSCODE_FAILED = "Falló la transcodificación. WebM disponible."
STATUS_CANCELLED = "Cancelado"


def recording_status(timeline: Timeline) -> str:
    return f"Grabando {timeline.total_duration_s:.0f}s..."


def percent(fraction: float) -> int:
    """Redondeo a entero (mitades hacia arriba) de una fracción [0, 1]."""
    return int(math.floor(100 * min(1.0, max(0.0, fraction)) + 0.5))


class CaptureSession:
    """
    Una sesión de grabación: render + audio -> encoder -> transcodificación.

    Los colaboradores se inyectan para poder reemplazarlos en tests:
    encoder y transcoder reales usan FFmpeg, el reloj por defecto es
    determinista (FrameClock).
    """

    def __init__(
        self,
        encoder,
        transcoder=None,
        script: SceneScript = DEFAULT_SCRIPT,
        timeline: Timeline = DEFAULT_TIMELINE,
        tts_engine=None,
        clock: Optional[SessionClock] = None,
        cancel_token: Optional[CancelToken] = None,
        canvas_factory: Callable[[int, int], FrameCanvas] = FrameCanvas,
        graph_factory: Callable[..., AudioGraph] = build_audio_graph,
        with_music: bool = True,
        sample_rate: int = SAMPLE_RATE,
        temp_dir: Optional[str] = None,
        on_update: Optional[Callable[["CaptureSession"], None]] = None,
    ):
        self.encoder = encoder
        self.transcoder = transcoder
        self.script = script
        self.timeline = timeline
        self.tts_engine = tts_engine
        self.clock = clock or FrameClock(timeline.frame_rate)
        self.cancel_token = cancel_token or CancelToken()
        self.canvas_factory = canvas_factory
        self.graph_factory = graph_factory
        self.with_music = with_music
        self.sample_rate = sample_rate
        self.temp_dir = temp_dir
        self.on_update = on_update

        self._lock = threading.Lock()
        self._state = SessionState.IDLE
        self._status = STATUS_IDLE
        self._progress = 0
        self._chunks: List[bytes] = []

        self.captured: Optional[bytes] = None
        self.transcoded: Optional[bytes] = None
        self.error: Optional[BaseException] = None
        self.progress_history: List[int] = []

        self.canvas: Optional[FrameCanvas] = None
        self.renderer: Optional[BoundRenderer] = None
        self.video_stream = None
        self.graph: Optional[AudioGraph] = None
        self.combined: Optional[CombinedStream] = None
        self.narration: Optional[NarrationScheduler] = None
        self._encoder_started = False

    # ------------------------------------------------------------------
    # Superficie pública
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> str:
        return self._status

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def dropped_frames(self) -> int:
        return self.renderer.dropped_frames if self.renderer else 0

    def cancel(self) -> None:
        self.cancel_token.cancel()

    def artifacts(self) -> Optional[SessionArtifacts]:
        """Entregables de la sesión (None si no hubo captura)."""
        if not self.captured:
            return None
        return SessionArtifacts(captured=self.captured, transcoded=self.transcoded)

    def _set_state(self, state: SessionState, status: str) -> None:
        self._state = state
        self._status = status
        logger.info(f"[{state.value}] {status}")
        self._notify()

    def _report_progress(self, value: int) -> None:
        if value == self._progress and self.progress_history:
            return
        self._progress = value
        self.progress_history.append(value)
        self._notify()

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self)

    def _fail(self, status: str, error: BaseException) -> SessionState:
        self.error = error
        logger.error(f"{status} ({error})")
        self._set_state(SessionState.FAILED, status)
        return self._state

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def run(self) -> SessionState:
        """
        Ejecuta la sesión completa de forma bloqueante.

        Returns:
            Estado terminal alcanzado

        Raises:
            SessionBusyError: si la sesión no está en IDLE
        """
        with self._lock:
            if self._state is not SessionState.IDLE:
                raise SessionBusyError(f"La sesión ya está en estado '{self._state.value}'")
            self._state = SessionState.PREPARING
        self._set_state(SessionState.PREPARING, STATUS_PREPARING)

        try:
            return self._run()
        except Exception as e:
            # Cualquier error imprevisto deja la sesión en FAILED y libera recursos
            logger.exception("Error inesperado en la sesión")
            self._abort_capture()
            if not self._state.is_terminal:
                self._fail(f"Error inesperado: {e}", e)
            raise

    def _run(self) -> SessionState:
        try:
            self._prepare()
        except EncoderUnavailable as e:
            self._release()
            return self._fail(f"Encoder no disponible: {e}", e)
        except (MemoryError, ValueError, OSError) as e:
            self._release()
            return self._fail(f"No se pudo crear la superficie de dibujo: {e}", e)

        try:
            self._record()
        except SessionCancelled:
            logger.warning("Grabación cancelada")
            return self._stop_cancelled()
        except EncoderUnavailable as e:
            self._abort_capture()
            return self._fail(f"Encoder no disponible: {e}", e)
        except EncoderError as e:
            self._abort_capture()
            return self._fail(f"Error del encoder: {e}", e)

        try:
            self._stop()
        except EncoderError as e:
            self._abort_capture()
            return self._fail(f"Error finalizando la captura: {e}", e)

        return self._transcode()

    def _prepare(self) -> None:
        tl = self.timeline
        self.canvas = self.canvas_factory(tl.width, tl.height)
        self.renderer = BoundRenderer(self.canvas, tl)
        self.video_stream = self.canvas.capture_stream(tl.frame_rate, tl.total_frames)

        try:
            self.graph = self.graph_factory(
                tl,
                tts_engine=self.tts_engine,
                sample_rate=self.sample_rate,
                with_music=self.with_music,
            )
        except AudioEngineError as e:
            logger.error(f"No se pudo construir el grafo de audio, se graba sin audio: {e}")
            self.graph = build_audio_graph(tl, tts_engine=None, sample_rate=self.sample_rate, with_music=False)

        self.combined = CombinedStream(video=self.video_stream, audio=self.graph.destination)
        self.encoder.check_available()

    def _start_sources(self) -> None:
        try:
            self.graph.start(MUSIC_START_MS)
        except AudioEngineError as e:
            logger.error(f"No se pudo iniciar la música: {e}")

        if self.tts_engine is not None:
            voice = self._pick_voice()
            self.narration = NarrationScheduler(self.script, self.graph.narration, voice=voice)
            self.narration.start()
            if self.narration.failed:
                logger.warning(f"{len(self.narration.failed)} locución(es) quedaron mudas")
        else:
            logger.info("Narración desactivada")

        try:
            self.graph.open_destination(self.temp_dir)
        except AudioEngineError as e:
            logger.error(f"Falló la mezcla de audio, se usa pista muda: {e}")
            self.graph.open_silent_destination(self.temp_dir)

    def _pick_voice(self) -> Optional[str]:
        pick = getattr(self.tts_engine, "pick_voice", None)
        return pick() if pick else None

    def _record(self) -> None:
        tl = self.timeline
        self._set_state(SessionState.RECORDING, recording_status(tl))

        self._start_sources()
        self.encoder.start(self.combined, on_chunk=self._chunks.append)
        self._encoder_started = True

        self.clock.start()
        total = tl.total_duration_ms
        while True:
            elapsed = self.clock.elapsed_ms()
            self._report_progress(percent(elapsed / total))
            if elapsed >= total:
                break

            self.renderer.render_frame(elapsed)
            self.video_stream.push(elapsed)

            if self.cancel_token.cancelled:
                raise SessionCancelled("Sesión cancelada durante la grabación")
            self.clock.tick()

    def _stop(self) -> None:
        self._set_state(SessionState.STOPPING, STATUS_STOPPING)
        self._finalize(pad=True)
        logger.info(
            f"Captura: {len(self.captured) / 1024 / 1024:.1f} MB, "
            f"{self.video_stream.frames_written} frames "
            f"({self.video_stream.repeated_frames} repetidos, {self.dropped_frames} descartados)"
        )

    def _finalize(self, pad: bool) -> None:
        self.video_stream.close(pad=pad)
        try:
            self.encoder.stop()
        finally:
            self._release()
        self.captured = b"".join(self._chunks)

    def _stop_cancelled(self) -> SessionState:
        self._set_state(SessionState.STOPPING, STATUS_STOPPING)
        try:
            self._finalize(pad=False)
        except EncoderError as e:
            logger.error(f"No se pudo finalizar la captura parcial: {e}")
            self._abort_capture()
        self.error = SessionCancelled("Sesión cancelada")
        status = f"{STATUS_CANCELLED}. WebM parcial disponible." if self.captured else STATUS_CANCELLED
        self._set_state(SessionState.CANCELLED, status)
        return self._state

    def _transcode(self) -> SessionState:
        if self.transcoder is None:
            self._set_state(SessionState.DONE, STATUS_DONE_NO_MP4)
            return self._state

        self._set_state(SessionState.TRANSCODING, STATUS_TRANSCODING)
        try:
            self.transcoded = self.transcoder.convert(
                self.captured,
                on_progress=lambda fraction: self._report_progress(percent(fraction)),
                cancel_token=self.cancel_token,
            )
        except SessionCancelled as e:
            self.error = e
            self._set_state(SessionState.CANCELLED, f"{STATUS_CANCELLED}. WebM disponible.")
            return self._state
        except TranscodeError as e:
            # El WebM queda disponible y el progreso se congela donde estaba
            return self._fail(STATUS_TRANSCODE_FAILED, e)

        self._set_state(SessionState.DONE, STATUS_DONE)
        return self._state

    # ------------------------------------------------------------------
    # Liberación de recursos
    # ------------------------------------------------------------------

    def _release(self) -> None:
        """Desmonta el grafo (una sola vez) y libera la superficie."""
        if self.graph is not None:
            self.graph.stop()
        if self.canvas is not None:
            self.canvas.release()

    def _abort_capture(self) -> None:
        if self._encoder_started:
            try:
                self.encoder.abort()
            except StretchVideoError as e:
                logger.warning(f"Error abortando el encoder: {e}")
        self._release()
