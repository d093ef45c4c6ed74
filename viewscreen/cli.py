"""CLI entry point: argparse and main()."""

import argparse
import sys

from viewscreen.dashboard import run_dashboard
from viewscreen.parser import StreamParser
from viewscreen.state import apply_user_config, config
from viewscreen.ui import dbg, dim, error, set_color


HELP_EPILOG = """\
Dashboard keys:
  q, Ctrl+C      Quit
  up/k, down/j   Scroll one line
  PgUp, PgDn     Scroll half a page
  Home/g, End/G  Jump to top / bottom

Settings in ~/.viewscreen/config.json (verbose, no_color, show_usage,
no_tui, width) are defaults; flags override them.

Examples:
  claude -p "fix the tests" --output-format stream-json --verbose | viewscreen
  viewscreen --no-tui session.ndjson
  viewscreen -v --no-usage < session.ndjson
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="viewscreen",
        description="viewscreen: render a coding agent's stream-json output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_EPILOG,
    )
    parser.add_argument("file", nargs="?", help="NDJSON log to replay (default: stdin)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show full tool results")
    parser.add_argument("--no-color", action="store_true", help="Disable colors")
    parser.add_argument("--no-usage", action="store_true", help="Hide token usage in the summary")
    parser.add_argument("--no-tui", action="store_true", help="Plain line output even on a terminal")
    parser.add_argument("--debug", action="store_true", help="Debug mode")
    return parser


def apply_args(args: argparse.Namespace):
    """Persisted settings first, then flags on top."""
    applied = apply_user_config()
    if applied:
        dbg(f"user config: {applied}")
    if args.verbose:
        config.verbose = True
    if args.no_color:
        config.no_color = True
    if args.no_usage:
        config.show_usage = False
    if args.no_tui:
        config.no_tui = True
    config.debug = args.debug


def use_dashboard() -> bool:
    return not config.no_tui and sys.stdout.isatty()


def main(argv=None):
    args = build_parser().parse_args(argv)
    apply_args(args)
    set_color(not config.no_color)

    source = sys.stdin
    if args.file:
        try:
            source = open(args.file, encoding="utf-8", errors="replace")
        except OSError as e:
            error(f"cannot open {args.file}: {e.strerror}")
            sys.exit(1)

    try:
        if use_dashboard():
            dbg("dashboard mode")
            run_dashboard(source)
        else:
            StreamParser().run(source)
    except KeyboardInterrupt:
        dim("interrupted")
    except (OSError, ValueError) as e:
        error(str(e))
        sys.exit(1)
    finally:
        if source is not sys.stdin:
            source.close()
