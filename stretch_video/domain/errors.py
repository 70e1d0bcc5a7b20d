"""
Errores del pipeline render → captura → transcodificación.
"""


class StretchVideoError(Exception):
    """Error genérico del generador."""
    pass


class RenderSkip(StretchVideoError):
    """La superficie de dibujo no está disponible; se descarta el frame."""
    pass


class EncoderUnavailable(StretchVideoError):
    """FFmpeg o la pareja de codecs requerida no existe. La sesión no puede empezar."""
    pass


class EncoderError(StretchVideoError):
    """El encoder falló mientras grababa o finalizaba."""
    pass


class AudioEngineError(StretchVideoError):
    """Falló la música o la narración. El video se graba igual."""
    pass


class TranscodeError(StretchVideoError):
    """Falló la conversión post-captura. El WebM original sigue disponible."""
    pass


class TranscodeTimeout(TranscodeError):
    """La transcodificación superó el tiempo máximo permitido."""
    pass


class SessionBusyError(StretchVideoError):
    """Ya hay una sesión en curso."""
    pass


class SessionCancelled(StretchVideoError):
    """La sesión fue cancelada por el usuario."""
    pass
