"""
Orquestador de sesiones.
Arma los subsistemas a partir de la configuración, corre una sesión a la vez
en segundo plano y guarda los entregables.
"""
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from .capture.clock import CancelToken, FrameClock, WallClock
from .capture.encoder import FFmpegEncoder
from .capture.session import CaptureSession
from .config import Settings
from .director.script import DEFAULT_SCRIPT, DEFAULT_TIMELINE, ScriptParser
from .domain.errors import SessionBusyError
from .domain.models import SceneScript, SessionArtifacts, SessionState, Timeline
from .infrastructure.transcoder import FFmpegTranscoder

logger = logging.getLogger(__name__)


class SessionController:
    """
    El 'Director de Orquesta'.
    Garantiza que haya como máximo una sesión activa; una sesión terminada
    se reemplaza por una nueva al volver a iniciar.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        script: SceneScript = DEFAULT_SCRIPT,
        timeline: Timeline = DEFAULT_TIMELINE,
        session_factory: Optional[Callable[..., CaptureSession]] = None,
    ):
        # Un guion que no entra en la línea de tiempo falla antes de crear nada
        ScriptParser().check_fits(script, timeline)

        self.settings = settings or Settings()
        self.script = script
        self.timeline = timeline
        self.session_factory = session_factory or self.build_session

        self.output_dir = Path(self.settings.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._session: Optional[CaptureSession] = None
        self._thread: Optional[threading.Thread] = None
        self._thread_error: Optional[BaseException] = None

    @property
    def current(self) -> Optional[CaptureSession]:
        return self._session

    @property
    def busy(self) -> bool:
        if self._thread is not None and self._thread.is_alive():
            return True
        return self._session is not None and self._session.state.is_active

    def _build_tts(self):
        if not self.settings.narration:
            return None
        from .tts.edge_tts import EdgeTTSEngine

        return EdgeTTSEngine(
            temp_dir=self.settings.temp_dir,
            preferred_voices=self.settings.tts_voices,
            max_attempts=self.settings.tts_max_attempts,
        )

    def build_session(self, on_update=None) -> CaptureSession:
        """Crea una sesión nueva con los colaboradores reales (FFmpeg, Edge-TTS)."""
        s = self.settings
        tl = self.timeline

        encoder = FFmpegEncoder(
            tl,
            ffmpeg_path=s.ffmpeg_path,
            video_bitrate=s.video_bitrate,
            audio_bitrate=s.audio_bitrate,
            codec_pair=s.codec_pair,
        )
        transcoder = None
        if s.transcode:
            transcoder = FFmpegTranscoder(
                tl.total_duration_ms,
                ffmpeg_path=s.ffmpeg_path,
                timeout_seconds=s.transcode_timeout,
                temp_dir=s.temp_dir,
                preset=s.transcode_preset,
                crf=s.transcode_crf,
                audio_bitrate=s.audio_bitrate,
            )
        clock = WallClock(tl.frame_rate) if s.realtime else FrameClock(tl.frame_rate)

        return CaptureSession(
            encoder,
            transcoder,
            script=self.script,
            timeline=tl,
            tts_engine=self._build_tts(),
            clock=clock,
            cancel_token=CancelToken(),
            with_music=s.music,
            sample_rate=s.sample_rate,
            temp_dir=s.temp_dir,
            on_update=on_update,
        )

    def start(self, on_update=None) -> CaptureSession:
        """
        Lanza una sesión nueva en segundo plano.

        Raises:
            SessionBusyError: si ya hay una sesión en curso
        """
        with self._lock:
            if self.busy:
                raise SessionBusyError("Ya hay una sesión en curso")

            session = self.session_factory(on_update=on_update)
            self._session = session
            self._thread_error = None
            self._thread = threading.Thread(target=self._run_session, args=(session,), name="capture-session")
            self._thread.start()

        logger.info("Sesión iniciada")
        return session

    def _run_session(self, session: CaptureSession) -> None:
        try:
            session.run()
        except Exception as e:
            # La sesión ya registró el error; wait() lo vuelve a lanzar
            self._thread_error = e

    def wait(self, timeout: Optional[float] = None) -> Optional[SessionState]:
        """
        Espera a que termine la sesión actual.

        Returns:
            Estado de la sesión (None si no hay sesión)
        """
        if self._thread is not None:
            self._thread.join(timeout)
        if self._thread_error is not None:
            error, self._thread_error = self._thread_error, None
            raise error
        return self._session.state if self._session else None

    def cancel(self) -> bool:
        """Pide la cancelación de la sesión activa. Devuelve False si no había ninguna."""
        if self._session is None or not self.busy:
            return False
        logger.warning("Cancelación solicitada")
        self._session.cancel()
        return True

    def run(self, on_update=None) -> CaptureSession:
        """Inicia una sesión y bloquea hasta que termine."""
        session = self.start(on_update=on_update)
        self.wait()
        return session

    def save_artifacts(self, session: Optional[CaptureSession] = None) -> Dict[str, Path]:
        """
        Escribe los entregables en el directorio de salida.

        Returns:
            {"webm": ruta, "mp4": ruta} con los que existan
        """
        session = session or self._session
        artifacts: Optional[SessionArtifacts] = session.artifacts() if session else None
        if artifacts is None:
            logger.warning("La sesión no produjo ningún video")
            return {}

        saved = {}
        webm_path = self.output_dir / artifacts.captured_name
        webm_path.write_bytes(artifacts.captured)
        saved["webm"] = webm_path
        logger.info(f"WebM guardado: {webm_path} ({len(artifacts.captured) / 1024 / 1024:.1f} MB)")

        if artifacts.transcoded:
            mp4_path = self.output_dir / artifacts.transcoded_name
            mp4_path.write_bytes(artifacts.transcoded)
            saved["mp4"] = mp4_path
            logger.info(f"MP4 guardado: {mp4_path} ({len(artifacts.transcoded) / 1024 / 1024:.1f} MB)")

        return saved
