from __future__ import annotations

import argparse
import logging
import time

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .catalog import SOUND_CATALOG, SOUND_EVENT_IDS, get_recipe
from .config import EngineSettings
from .engine import SoundEngine
from .logging_utils import configure_logging, debug_enabled, get_log_path, log_exception
from .playback import render_sound, sound_span
from .storage import JsonFileStore
from .audio import write_wav

_LOGGER = logging.getLogger("tonecue.cli")
_CONSOLE = Console()
# Leave room for the output stream's buffer to drain before closing it.
_PLAYBACK_GRACE = 0.15


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tonecue", description="Synthesized UI sound effects.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show every sound event and its recipe.")

    play = sub.add_parser("play", help="Play sound events on the default output device.")
    play.add_argument("events", nargs="+", choices=SOUND_EVENT_IDS, metavar="EVENT")

    render = sub.add_parser("render", help="Render a sound event to a wav file.")
    render.add_argument("event", choices=SOUND_EVENT_IDS, metavar="EVENT")
    render.add_argument("output", type=str)
    render.add_argument("--volume", type=float, default=1.0)

    volume = sub.add_parser("volume", help="Show or set the saved master volume (0-1).")
    volume.add_argument("level", type=float, nargs="?")

    sub.add_parser("mute", help="Mute all sound effects.")
    sub.add_parser("unmute", help="Unmute sound effects.")
    return parser


def _catalog_table() -> Table:
    table = Table(title="tonecue sounds")
    table.add_column("event", style="bold")
    table.add_column("source")
    table.add_column("duration", justify="right")
    table.add_column("description")
    for event_id, recipe in SOUND_CATALOG.items():
        if recipe.uses_noise:
            assert recipe.filter is not None
            end = recipe.filter.end_frequency or recipe.filter.start_frequency
            source = f"noise, {recipe.filter.kind} {recipe.filter.start_frequency:g}->{end:g} Hz"
        elif recipe.is_melody:
            source = f"{recipe.waveform}, {len(recipe.notes)} notes"
        else:
            source = f"{recipe.waveform}, {recipe.tone:g} Hz"
        table.add_row(event_id, source, f"{recipe.duration:.2f}s", recipe.description)
    return table


def _status_line(engine: SoundEngine) -> str:
    state = "muted" if engine.is_muted() else "on"
    return f"volume {engine.get_volume():.2f}, sound {state}"


def render_error(context: str, exc: BaseException) -> None:
    body = f"{type(exc).__name__}: {exc}\nDetails: {get_log_path()}"
    _CONSOLE.print(Panel(Text(body), title=f"{context} failed", style="red"))


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        settings = EngineSettings.from_env()

        if args.command == "list":
            _CONSOLE.print(_catalog_table())
            return 0

        if args.command == "render":
            audio = render_sound(args.event, sample_rate=settings.sample_rate, volume=args.volume)
            path = write_wav(args.output, audio, sample_rate=settings.sample_rate)
            _CONSOLE.print(Text(f"Wrote {args.event} to {path} (sr={settings.sample_rate})"))
            return 0

        engine = SoundEngine(JsonFileStore(settings.state_path), settings=settings)

        if args.command == "play":
            if engine.is_muted():
                _CONSOLE.print("Sound is muted; run `tonecue unmute` first.")
                return 1
            error = engine.resume()
            if error is not None:
                render_error("tonecue play", error)
                return 1
            with engine:
                for event_id in args.events:
                    engine.play(event_id)
                    time.sleep(sound_span(get_recipe(event_id)) + _PLAYBACK_GRACE)
            return 0

        if args.command == "volume":
            if args.level is not None:
                engine.set_volume(args.level)
            _CONSOLE.print(_status_line(engine))
            return 0

        if args.command in ("mute", "unmute"):
            engine.set_muted(args.command == "mute")
            _CONSOLE.print(_status_line(engine))
            return 0

        parser.print_help()
        return 1
    except Exception as exc:
        _LOGGER.warning("tonecue CLI failed: %s", exc, exc_info=debug_enabled())
        log_exception("tonecue CLI", exc)
        render_error("tonecue CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
