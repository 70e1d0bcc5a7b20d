"""
Renderizador de frames con Pillow.
Dibuja cada frame del video vertical (9:16) como función pura del tiempo.
"""

import logging
import math
from functools import lru_cache
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from ..director.pose import posture_at
from ..domain.errors import RenderSkip
from ..domain.models import Posture, Timeline
from .stream import LiveVideoStream

logger = logging.getLogger(__name__)

# Paleta
GRADIENT_TOP = (255, 255, 255)
GRADIENT_BOTTOM = (238, 248, 241)
FLOOR_COLOR = "#dff2e7"
FLOOR_HEIGHT = 240
ACCENT_COLOR = (124, 199, 159, 38)  # rgba(124,199,159,0.15)
TITLE_COLOR = "#215a3f"
SUBTITLE_COLOR = "#2f7453"
INK_COLOR = "#4a4a4a"
FIGURE_FILL = "#7cc79f"
PLATE_COLOR = (255, 255, 255, 217)  # blanco al 85%

# Círculos decorativos
CIRCLE_COUNT = 6
CIRCLE_PERIOD_MS = 6000
CIRCLE_BAND = (150, 300)  # franja vertical donde oscilan

# Textos
TITLE_LINES = (
    ("3 Fast Morning Stretches", 48, True, 90),
    ("for Back Pain (Yoga)", 36, True, 140),
)
FOOTER_TEXT = "Breathe slowly. Move with comfort, never pain."

# Placa de subtítulo
PLATE_WIDTH = 720
PLATE_HEIGHT = 80
PLATE_Y = 1600
PLATE_RADIUS = 16

# Figura
FIGURE_SCALE = 2.2
FIGURE_OFFSET_Y = 120
STROKE_WIDTH = 6
HEAD_RADIUS = 18
SPINE_SAMPLES = 4
SPINE_LENGTH = 120
SPINE_BEND = {Posture.CAT: -0.35, Posture.COW: 0.35}

_ALL_FOURS = (
    # brazos desde los hombros
    ((0, 10), (-50, 60)),
    ((0, 10), (50, 60)),
    # piernas desde la cadera
    ((0, 80), (-45, 135)),
    ((0, 80), (45, 135)),
)

LIMBS = {
    Posture.COW: _ALL_FOURS,
    Posture.CAT: _ALL_FOURS,
    Posture.CHILD: (
        ((0, 20), (-40, 80)),
        ((0, 20), (40, 80)),
        ((-20, 90), (-55, 120)),
        ((20, 90), (55, 120)),
    ),
    Posture.SEATED: (
        ((0, 20), (-55, 90)),
        ((0, 20), (55, 90)),
        # brazos hacia los pies
        ((-15, 60), (-55, 115)),
        ((15, 60), (55, 115)),
    ),
}

FONT_CANDIDATES = {
    True: [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
        "DejaVuSans-Bold.ttf",
    ],
    False: [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
        "/System/Library/Fonts/Supplemental/Arial.ttf",
        "DejaVuSans.ttf",
    ],
}


@lru_cache(maxsize=16)
def _font(size: int, bold: bool = False):
    """Carga una fuente TrueType con fallback a la fuente de Pillow."""
    for path in FONT_CANDIDATES[bold]:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


@lru_cache(maxsize=4)
def _background(width: int, height: int) -> Image.Image:
    """Gradiente vertical de dos colores (se calcula una sola vez)."""
    mask = Image.linear_gradient("L").resize((width, height))
    top = Image.new("RGBA", (width, height), GRADIENT_TOP + (255,))
    bottom = Image.new("RGBA", (width, height), GRADIENT_BOTTOM + (255,))
    return Image.composite(bottom, top, mask)


class FrameCanvas:
    """
    Superficie de dibujo de tamaño fijo.
    Una vez liberada, cualquier intento de dibujar lanza RenderSkip.
    """

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self._image: Optional[Image.Image] = Image.new("RGBA", (width, height), (0, 0, 0, 255))

    @property
    def available(self) -> bool:
        return self._image is not None

    @property
    def image(self) -> Image.Image:
        if self._image is None:
            raise RenderSkip("Superficie de dibujo no disponible")
        return self._image

    def to_rgb_bytes(self) -> bytes:
        """Frame actual como RGB24 crudo, listo para el encoder."""
        return self.image.convert("RGB").tobytes()

    def capture_stream(self, frame_rate: int, total_frames: int):
        """Abre un stream de video en vivo que muestrea esta superficie."""
        return LiveVideoStream(self, frame_rate, total_frames)

    def release(self) -> None:
        self._image = None


def _draw_centered_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    cx: float,
    baseline_y: float,
    size: int,
    bold: bool,
    fill,
) -> None:
    font = _font(size, bold)
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text((cx, baseline_y), text, font=font, fill=fill, anchor="ms")
    else:
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        draw.text((cx - (right - left) / 2, baseline_y - (bottom - top)), text, font=font, fill=fill)


def _draw_accent_circles(image: Image.Image, elapsed_ms: float) -> None:
    """Círculos translúcidos que suben y bajan con periodo de 6 segundos."""
    band_top, band_bottom = CIRCLE_BAND
    band = Image.new("RGBA", (image.width, band_bottom - band_top), (0, 0, 0, 0))
    draw = ImageDraw.Draw(band)

    phase = (elapsed_ms % CIRCLE_PERIOD_MS) / CIRCLE_PERIOD_MS
    cy = 220 + math.sin(phase * math.pi * 2) * 12 - band_top
    for i in range(CIRCLE_COUNT):
        cx = 120 + i * 180
        r = 40 + (i % 2) * 12
        draw.ellipse((cx - r, cy - r, cx + r, cy + r), fill=ACCENT_COLOR)

    image.alpha_composite(band, dest=(0, band_top))


def _draw_subtitle_plate(image: Image.Image, name: str) -> None:
    plate_x = (image.width - PLATE_WIDTH) // 2
    plate = Image.new("RGBA", (PLATE_WIDTH, PLATE_HEIGHT), (0, 0, 0, 0))
    ImageDraw.Draw(plate).rounded_rectangle(
        (0, 0, PLATE_WIDTH - 1, PLATE_HEIGHT - 1), radius=PLATE_RADIUS, fill=PLATE_COLOR
    )
    image.alpha_composite(plate, dest=(plate_x, PLATE_Y))

    draw = ImageDraw.Draw(image)
    _draw_centered_text(draw, name, image.width / 2, PLATE_Y + 52, 40, True, TITLE_COLOR)


def _draw_stick_figure(
    draw: ImageDraw.ImageDraw,
    x: float,
    y: float,
    scale: float,
    posture: Posture,
) -> None:
    """Figura de palitos: cabeza, columna curvada y extremidades según la postura."""

    def pt(px: float, py: float) -> tuple[float, float]:
        return (x + px * scale, y + py * scale)

    width = round(STROKE_WIDTH * scale)

    hx, hy = pt(0, -60)
    r = HEAD_RADIUS * scale
    draw.ellipse((hx - r, hy - r, hx + r, hy + r), fill=FIGURE_FILL)

    bend_amount = SPINE_BEND.get(posture, 0.0)
    spine = [pt(0, -40)]
    for i in range(1, SPINE_SAMPLES + 1):
        p = i / SPINE_SAMPLES
        bend = math.sin(p * math.pi) * bend_amount * 30
        spine.append(pt(bend, -40 + p * SPINE_LENGTH))
    draw.line(spine, fill=INK_COLOR, width=width, joint="curve")

    for start, end in LIMBS[posture]:
        draw.line([pt(*start), pt(*end)], fill=INK_COLOR, width=width)


def render_frame(canvas: FrameCanvas, elapsed_ms: float, timeline: Timeline) -> None:
    """
    Sobrescribe por completo la superficie con el frame del instante dado.

    Args:
        canvas: Superficie de destino
        elapsed_ms: Tiempo desde el inicio de la sesión
        timeline: Constantes del video

    Raises:
        RenderSkip: si la superficie no está disponible
    """
    image = canvas.image
    width, height = image.size

    # 1. Fondo
    image.paste(_background(width, height))

    # 2. Piso
    draw = ImageDraw.Draw(image)
    draw.rectangle((0, height - FLOOR_HEIGHT, width, height), fill=FLOOR_COLOR)

    # 3. Círculos decorativos
    _draw_accent_circles(image, elapsed_ms)

    # 4. Título
    draw = ImageDraw.Draw(image)
    for (text, size, bold, baseline), color in zip(TITLE_LINES, (TITLE_COLOR, SUBTITLE_COLOR)):
        _draw_centered_text(draw, text, width / 2, baseline, size, bold, color)

    # 5. Placa con el nombre de la postura
    pose = posture_at(elapsed_ms, timeline)
    _draw_subtitle_plate(image, pose.name)

    # 6. Figura
    draw = ImageDraw.Draw(image)
    _draw_stick_figure(draw, width / 2, height / 2 + FIGURE_OFFSET_Y, FIGURE_SCALE, pose.posture)

    # 7. Pie
    _draw_centered_text(draw, FOOTER_TEXT, width / 2, height - 60, 26, False, INK_COLOR)


class BoundRenderer:
    """Renderizador atado a su superficie; se crea al preparar la sesión."""

    def __init__(self, canvas: FrameCanvas, timeline: Timeline):
        self.canvas = canvas
        self.timeline = timeline
        self.dropped_frames = 0

    def render_frame(self, elapsed_ms: float) -> bool:
        """
        Pinta el frame. Devuelve False si se descartó (superficie no disponible).
        """
        try:
            render_frame(self.canvas, elapsed_ms, self.timeline)
            return True
        except RenderSkip:
            self.dropped_frames += 1
            logger.debug(f"Frame descartado en t={elapsed_ms:.0f}ms")
            return False


def render_preview(elapsed_ms: float, output_path: str, timeline: Optional[Timeline] = None) -> str:
    """
    Genera un PNG con el frame de un instante, útil para revisar el diseño.

    Returns:
        Ruta al PNG generado
    """
    timeline = timeline or Timeline()
    canvas = FrameCanvas(timeline.width, timeline.height)
    render_frame(canvas, elapsed_ms, timeline)

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    canvas.image.convert("RGB").save(path)
    logger.info(f"Preview generada: {path}")
    return str(path)
