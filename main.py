#!/usr/bin/env python3
"""
Ping-Tuber - Preview Host
=========================
Runs the avatar source outside a broadcast application:
  Mic -> RMS voice detection -> speaking flag -> idle/speaking frame -> window

The host here plays the role the broadcast app normally plays: it
registers the module, creates the source, calls tick/render every frame
and destroys the source on exit.

Usage:
    python main.py
    python main.py --debug
    python main.py --image assets/me.png --threshold 0.05
"""

import argparse
import logging
import signal
import sys
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Load environment variables before the settings singletons are read
load_dotenv()

from pingtuber.config import (
    app_config,
    avatar_config,
    print_config_summary,
    validate_config,
)
from pingtuber.errors import TuberError
from pingtuber.host import MemoryGraphics, SourceRegistry
from pingtuber.listener import list_input_devices
from pingtuber.preview import DisplayWindow, PreviewHost, create_placeholder_avatar
from pingtuber.source import StaticSource, TuberModule, TuberSource

console = Console()
logger = logging.getLogger(__name__)


class AvatarPreview:
    """
    Preview orchestrator.

    Owns the graphics surface, the registry and the host loop for a
    single avatar source.
    """

    def __init__(
        self,
        image_path: Optional[str] = None,
        threshold: Optional[float] = None,
        fps: Optional[int] = None,
        static: bool = False,
        show_preview: bool = True,
        debug: bool = False,
    ):
        """Initialize the preview."""
        self.debug = debug or app_config.debug

        # Setup logging
        log_level = logging.DEBUG if self.debug else getattr(logging, app_config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        self.source_id = StaticSource.get_id() if static else TuberSource.get_id()
        self.settings = {}
        if image_path:
            self.settings["image_path"] = image_path
        if threshold is not None:
            self.settings["threshold"] = threshold

        self.graphics = MemoryGraphics(avatar_config.width + avatar_config.draw_x,
                                       avatar_config.height + avatar_config.draw_y)
        self.registry = SourceRegistry(self.graphics)
        self.registry.load_module(TuberModule())

        display = None
        if show_preview:
            display = DisplayWindow(
                window_name=app_config.window_title,
                width=self.graphics.width,
                height=self.graphics.height,
            )

        self.host = PreviewHost(
            self.registry,
            self.graphics,
            fps=fps or app_config.fps,
            display=display,
            on_frame=self._on_frame,
        )
        self.source = None
        self._was_speaking = False

    def _on_frame(self, index: int, frame):
        speaking = bool(getattr(self.source, "is_speaking", False))
        if speaking != self._was_speaking:
            self._was_speaking = speaking
            console.print("[bold green]● speaking[/bold green]" if speaking else "[dim]○ idle[/dim]")

    def start(self):
        """Create the source and run the host loop (blocks)."""
        self.source = self.registry.create(self.source_id, self.settings)
        console.print(f"  [green]✓[/green] {self.registry.display_name(self.source_id)} created")

        if self.host.display:
            hint = "Press [bold]'q'[/bold] or [bold]ESC[/bold] in the avatar window to quit."
        else:
            hint = "Press [bold]Ctrl+C[/bold] to quit."
        console.print(Panel(
            "[bold green]Avatar is live![/bold green]\n\n"
            "Speak into your microphone to animate it.\n" + hint,
            title="Ping-Tuber",
            border_style="green",
        ))

        self.host.run()

    def stop(self):
        """Stop the host loop; the sources are destroyed as it exits."""
        self.host.stop()


def show_input_devices():
    """Print the available microphones."""
    table = Table(title="Audio Input Devices")
    table.add_column("Index", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Channels")
    table.add_column("Default Rate")

    for index, device in list_input_devices():
        table.add_row(
            str(index),
            device["name"],
            str(device["max_input_channels"]),
            f"{device['default_samplerate']:g}",
        )

    console.print(table)


def check_prerequisites(image_path: Optional[str] = None) -> bool:
    """Check if prerequisites are met before starting."""
    issues = validate_config()

    if issues:
        console.print(Panel(
            "\n".join(f"• {issue}" for issue in issues),
            title="⚠️ Configuration Issues",
            border_style="yellow",
        ))

    if image_path is None and not avatar_config.image_path.exists():
        create_placeholder_avatar(avatar_config.image_path, avatar_config.width, avatar_config.height)
        console.print(f"[yellow]⚠️ Using generated placeholder avatar:[/yellow] {avatar_config.image_path}")

    return True


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Ping-Tuber avatar preview",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py                          # Run with default settings
    python main.py --debug                  # Run with debug logging
    python main.py --threshold 0.05         # More sensitive microphone
    python main.py --no-display             # Headless mode (no window)
        """,
    )

    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--image", "-i",
        default=None,
        help="Avatar image path",
    )
    parser.add_argument(
        "--threshold", "-t",
        type=float,
        default=None,
        help="RMS speech threshold (0-1)",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=None,
        help="Host tick/render rate",
    )
    parser.add_argument(
        "--static",
        action="store_true",
        help="Run the static (non-reactive) source",
    )
    parser.add_argument(
        "--no-display",
        action="store_true",
        help="Run without display window",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio input devices and exit",
    )
    parser.add_argument(
        "--config",
        action="store_true",
        help="Show current configuration and exit",
    )

    args = parser.parse_args()

    if args.config:
        print_config_summary()
        return

    if args.list_devices:
        show_input_devices()
        return

    # Welcome banner
    console.print(Panel(
        "[bold cyan]Ping-Tuber[/bold cyan]\n"
        "[dim]Microphone → RMS → idle / speaking[/dim]",
        border_style="cyan",
    ))

    check_prerequisites(args.image)

    try:
        preview = AvatarPreview(
            image_path=args.image,
            threshold=args.threshold,
            fps=args.fps,
            static=args.static,
            show_preview=app_config.show_preview and not args.no_display,
            debug=args.debug,
        )

        # Handle Ctrl+C gracefully
        def signal_handler(sig, frame):
            console.print("\n[yellow]Interrupt received...[/yellow]")
            preview.stop()

        signal.signal(signal.SIGINT, signal_handler)

        preview.start()
        console.print("[green]Goodbye![/green]")

    except TuberError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        if args.debug:
            console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
