"""
Generador de video: 3 estiramientos matutinos para la espalda.

Render procedural 1080x1920 @ 30fps + música sintetizada + narración TTS,
capturado a WebM y transcodificado a MP4 con FFmpeg.
"""

__version__ = "1.0.0"
