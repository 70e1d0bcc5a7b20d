"""Infraestructura externa (FFmpeg)"""

from .transcoder import FFmpegTranscoder, parse_progress_time

__all__ = ["FFmpegTranscoder", "parse_progress_time"]
