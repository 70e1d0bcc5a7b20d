"""
Entrada principal: genera el video de estiramientos matutinos.

Uso:
    python -m stretch_video.main
    python -m stretch_video.main --realtime --output-dir ./output
    python -m stretch_video.main --preview-at 1500
"""
import argparse
import logging
import sys
import time

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeElapsedColumn

from .config import DEFAULT_CONFIG_PATH, load_settings
from .director.pose import posture_at
from .director.script import DEFAULT_SCRIPT, DEFAULT_TIMELINE
from .domain.errors import SessionBusyError
from .domain.models import SessionState
from .orchestrator import SessionController
from .video.renderer import render_preview

logger = logging.getLogger(__name__)
console = Console()

EXIT_CODES = {
    SessionState.DONE: 0,
    SessionState.FAILED: 1,
    SessionState.CANCELLED: 130,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generador de video: 3 estiramientos matutinos para la espalda")
    parser.add_argument("--config", type=str, default=DEFAULT_CONFIG_PATH, help="Ruta al YAML de configuración")
    parser.add_argument("--output-dir", type=str, help="Directorio de salida")
    parser.add_argument("--ffmpeg", type=str, dest="ffmpeg_path", help="Ruta al binario de FFmpeg")
    parser.add_argument("--voice", type=str, action="append", dest="tts_voices", help="Voz preferida (repetible)")
    parser.add_argument("--realtime", action="store_true", default=None, help="Grabar en tiempo real (45s)")
    parser.add_argument("--no-music", action="store_false", dest="music", default=None, help="Sin música de fondo")
    parser.add_argument("--no-narration", action="store_false", dest="narration", default=None, help="Sin narración")
    parser.add_argument("--no-transcode", action="store_false", dest="transcode", default=None, help="Solo WebM")
    parser.add_argument("--transcode-timeout", type=float, help="Tiempo máximo de transcodificación (s)")
    parser.add_argument("--preview-at", type=float, metavar="MS", help="Solo generar un PNG del frame en ese instante")
    parser.add_argument("-v", "--verbose", action="store_true", help="Logs detallados")
    return parser


def preview(settings, elapsed_ms: float) -> int:
    pose = posture_at(elapsed_ms, DEFAULT_TIMELINE)
    path = f"{settings.output_dir}/preview_{int(elapsed_ms)}ms.png"
    render_preview(elapsed_ms, path, DEFAULT_TIMELINE)
    console.print(f"[green]✓ Preview ({pose.name}, {pose.posture.value}): {path}[/green]")
    return 0


def record(settings) -> int:
    controller = SessionController(settings)

    console.print(Panel(
        f"[bold cyan]{' / '.join(DEFAULT_SCRIPT.titles)}[/bold cyan]\n"
        f"[dim]{DEFAULT_TIMELINE.width}x{DEFAULT_TIMELINE.height} @ {DEFAULT_TIMELINE.frame_rate}fps, "
        f"{DEFAULT_TIMELINE.total_duration_s:.0f}s[/dim]",
        title="🧘 Morning Stretches",
    ))

    try:
        session = controller.start()
    except SessionBusyError as e:
        console.print(f"[red]✗ {e}[/red]")
        return 1

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=30),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        refresh_per_second=4,
    ) as progress:
        task = progress.add_task(f"[cyan]{session.status}", total=100)
        try:
            while controller.busy:
                progress.update(task, description=f"[cyan]{session.status}", completed=session.progress)
                time.sleep(0.25)
        except KeyboardInterrupt:
            controller.cancel()
            console.print("[yellow]Cancelando...[/yellow]")
        try:
            state = controller.wait()
        except Exception as e:
            # La sesión ya quedó en FAILED; lo capturado se guarda igual
            logger.error(f"La sesión terminó con un error inesperado: {e}")
            state = session.state
        progress.update(task, description=f"[cyan]{session.status}", completed=session.progress)

    saved = controller.save_artifacts(session)

    if state is SessionState.DONE:
        console.print(f"\n[bold green]🎬 {session.status}[/bold green]")
    elif state is SessionState.CANCELLED:
        console.print(f"\n[yellow]⚠ {session.status}[/yellow]")
    else:
        console.print(f"\n[red]✗ {session.status}[/red]")

    for kind, path in saved.items():
        console.print(f"[cyan]{kind.upper()}: {path}[/cyan]")
    if session.dropped_frames:
        console.print(f"[dim]Frames descartados: {session.dropped_frames}[/dim]")

    return EXIT_CODES.get(state, 1)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(
        args.config,
        output_dir=args.output_dir,
        ffmpeg_path=args.ffmpeg_path,
        tts_voices=args.tts_voices,
        realtime=args.realtime,
        music=args.music,
        narration=args.narration,
        transcode=args.transcode,
        transcode_timeout=args.transcode_timeout,
    )

    if args.preview_at is not None:
        return preview(settings, args.preview_at)
    return record(settings)


if __name__ == "__main__":
    sys.exit(main())
