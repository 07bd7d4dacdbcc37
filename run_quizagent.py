#!/usr/bin/env python3
"""
Vocabulary Quiz Agent - Main Entry Point

Works through the learn/quiz, spelling and listening drills of a vocabulary
mini-program shown in a phone mirror window, using OCR to read the screen and
mouse input to tap it.

Usage:
    python run_quizagent.py selection --screen 1080x2400
    python run_quizagent.py selection --screen 540x1200 --origin 100,40
    python run_quizagent.py spelling
    python run_quizagent.py listening
    python run_quizagent.py action '{"action_type": "tap", "x": 540, "y": 1200}'
    python run_quizagent.py --interactive
"""

import sys
import json
import argparse
from typing import Tuple

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from quizagent.actions import parse_action_from_dict
from quizagent.config import POLICIES, config
from quizagent.diagnostics import ConsoleDiagnostics
from quizagent.gateway import ActionGateway
from quizagent.layout import Layout, load_layout
from quizagent.loop import QuizSession, SessionStatus
from quizagent.utils import get_screen_resolution


console = Console()

MODES = ("selection", "spelling", "listening", "action")


def print_banner():
    """Print the startup banner."""
    banner = """
+===========================================================+
|                                                           |
|      VOCABULARY QUIZ AGENT                                |
|                                                           |
|      Learn, quiz, spell and listen on autopilot           |
|                                                           |
+===========================================================+
"""
    console.print(banner, style="bold cyan")


def parse_screen(value: str) -> Tuple[int, int]:
    """Parse a WIDTHxHEIGHT screen size."""
    try:
        width, height = (int(part) for part in value.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got '{value}'") from None
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError("Screen size must be positive")
    return width, height


def parse_origin(value: str) -> Tuple[int, int]:
    """Parse an X,Y desktop position."""
    try:
        left, top = (int(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected X,Y, got '{value}'") from None
    return left, top


def resolve_screen_size() -> Tuple[int, int]:
    if config.screen_width > 0 and config.screen_height > 0:
        return config.screen_size
    width, height = get_screen_resolution()
    config.screen_width, config.screen_height = width, height
    return width, height


def print_status(layout: Layout):
    """Print current configuration."""
    table = Table(title="Session Settings", show_header=False, border_style="dim")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Layout", layout.name)
    table.add_row("Screen", f"{config.screen_width} x {config.screen_height}")
    table.add_row("Origin", f"{config.screen_left}, {config.screen_top}")
    table.add_row("Policy", config.policy)
    table.add_row("Batch Size", str(config.batch_size))
    table.add_row("Max Iterations", str(config.max_iterations))
    table.add_row("OCR Language", config.ocr_language)

    console.print(table)
    console.print()


def _desktop_io():
    """Screen reader and mouse host for the local desktop."""
    from quizagent.executors import PyAutoGUIHost
    from quizagent.ocr import TesseractTextSource

    return TesseractTextSource(screen_size=config.screen_size), PyAutoGUIHost()


def run_selection(layout: Layout, diagnostics: ConsoleDiagnostics) -> bool:
    perception, host = _desktop_io()
    session = QuizSession(perception, host, layout=layout, diagnostics=diagnostics)
    result = session.run()
    return result.status in (SessionStatus.COMPLETED, SessionStatus.EXHAUSTED)


def run_spelling(layout: Layout, diagnostics: ConsoleDiagnostics) -> bool:
    from quizagent.spelling import SpellingRunner

    perception, host = _desktop_io()

    def progress(current: int, total: int, word: str):
        console.print(f"[dim]Spelling ({current}/{total})[/dim] {word}")

    runner = SpellingRunner(perception, host, layout=layout, diagnostics=diagnostics, on_progress=progress)
    try:
        answered = runner.run()
    except KeyboardInterrupt:
        runner.cancel()
        console.print("\n[yellow]Spelling stopped by user[/yellow]")
        return False

    solved = sum(1 for word in answered if word)
    console.print(Panel(
        f"Spelled [bold]{solved}[/bold] of {len(answered)} questions",
        title="SPELLING",
        border_style="green" if solved == len(answered) else "yellow",
    ))
    return solved > 0


def run_listening(layout: Layout, diagnostics: ConsoleDiagnostics) -> bool:
    from quizagent.listening import ListeningRunner

    perception, host = _desktop_io()
    runner = ListeningRunner(perception, host, layout=layout, diagnostics=diagnostics)
    try:
        done = runner.run()
    except KeyboardInterrupt:
        runner.cancel()
        console.print("\n[yellow]Listening stopped by user[/yellow]")
        return False

    console.print(Panel(
        "Card pack finished" if done else "Stopped before the pack was finished",
        title="LISTENING",
        border_style="green" if done else "yellow",
    ))
    return done


def run_action(raw: str, layout: Layout, diagnostics: ConsoleDiagnostics) -> bool:
    """Dispatch a single JSON action through the gateway."""
    from quizagent.executors import PyAutoGUIHost

    action = parse_action_from_dict(json.loads(raw))
    gateway = ActionGateway(
        PyAutoGUIHost(),
        keyboard=layout.keyboard,
        screen_size=config.screen_size,
        diagnostics=diagnostics,
    )
    result = gateway.dispatch(action)
    style = "green" if result.success else "red"
    console.print(f"[{style}]{result.message}[/{style}]")
    return result.success


def run_mode(mode: str, layout: Layout, diagnostics: ConsoleDiagnostics, action: str = "") -> bool:
    if mode == "selection":
        return run_selection(layout, diagnostics)
    if mode == "spelling":
        return run_spelling(layout, diagnostics)
    if mode == "listening":
        return run_listening(layout, diagnostics)
    if mode == "action":
        return run_action(action, layout, diagnostics)
    raise ValueError(f"Unknown mode: {mode}")


def print_help():
    """Print help information."""
    help_text = """
[bold cyan]Vocabulary Quiz Agent - Help[/bold cyan]

[bold]Modes:[/bold]
  • selection   - learn words, then answer the multiple-choice quiz
  • spelling    - spell each word, reading the answer the app reveals
  • listening   - follow the listening drill prompts until the pack is done

[bold]Commands:[/bold]
  • help, ?     - Show this help
  • status      - Show session settings
  • quit, exit  - Exit the agent

[bold]Tips:[/bold]
  • Keep the phone mirror window in the same place on screen
  • If the window is not at the top-left corner, pass --origin X,Y with --screen
  • Open the drill in the mini-program before starting a mode
  • Press Ctrl+C to stop a running mode
"""
    console.print(help_text)


def interactive_mode(layout: Layout, diagnostics: ConsoleDiagnostics):
    """Run modes one after another until the user quits."""
    print_banner()
    print_status(layout)

    console.print("[bold green]Interactive mode started![/bold green]")
    console.print("[dim]Type a mode name to run it. Type 'quit' or 'exit' to stop.[/dim]")
    console.print()

    while True:
        try:
            choice = Prompt.ask("[bold cyan]Mode[/bold cyan]").strip().lower()

            if choice in ("quit", "exit", "q"):
                console.print("[dim]Goodbye![/dim]")
                break
            if choice in ("help", "?"):
                print_help()
                continue
            if choice == "status":
                print_status(layout)
                continue
            if choice not in MODES or choice == "action":
                console.print(f"[yellow]Unknown mode '{choice}'[/yellow]")
                continue

            run_mode(choice, layout, diagnostics)
            console.print()

        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted - mode stopped[/yellow]")
            continue
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            continue


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Vocabulary Quiz Agent - automate the drills of a vocabulary mini-program"
    )
    parser.add_argument("mode", nargs="?", choices=MODES, help="Drill to run")
    parser.add_argument("action", nargs="?", default="", help="JSON action for 'action' mode")
    parser.add_argument("-i", "--interactive", action="store_true", help="Run in interactive mode")
    parser.add_argument("--policy", choices=POLICIES, default=None,
                        help=f"Phase policy for selection mode (default: {config.policy})")
    parser.add_argument("--batch-size", type=int, default=None,
                        help=f"Words per learn/quiz batch (default: {config.batch_size})")
    parser.add_argument("--max-iterations", type=int, default=None,
                        help=f"Iteration ceiling for selection mode (default: {config.max_iterations})")
    parser.add_argument("--layout", default=None, help="Layout JSON file (default: built-in)")
    parser.add_argument("--screen", type=parse_screen, default=None,
                        help="Screen size as WIDTHxHEIGHT (default: detect)")
    parser.add_argument("--origin", type=parse_origin, default=None,
                        help="Desktop position of the mirror window as X,Y (default: 0,0)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug events")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    # Override config if needed
    if args.policy:
        config.policy = args.policy
    if args.batch_size:
        config.batch_size = args.batch_size
    if args.max_iterations:
        config.max_iterations = args.max_iterations
    if args.screen:
        config.screen_width, config.screen_height = args.screen
    if args.origin:
        config.screen_left, config.screen_top = args.origin

    try:
        config.validate()
        layout = load_layout(args.layout)
    except (ValueError, FileNotFoundError) as e:
        console.print(Panel(str(e), title="CONFIGURATION ERROR", border_style="red"))
        sys.exit(1)

    diagnostics = ConsoleDiagnostics(verbose=args.verbose)

    if args.interactive or not args.mode:
        resolve_screen_size()
        interactive_mode(layout, diagnostics)
        return

    if args.mode == "action" and not args.action:
        console.print("[red]'action' mode needs a JSON action argument[/red]")
        sys.exit(2)

    print_banner()
    resolve_screen_size()
    print_status(layout)
    ok = run_mode(args.mode, layout, diagnostics, args.action)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
