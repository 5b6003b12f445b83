import sys
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import setproctitle

log = logging.getLogger("console")

from buildrun.log.setup import setup_logging
from buildrun.local.config import effective_settings as config
from buildrun.errors import ResolutionError
from buildrun.build import TargetSpec, WatchSession, resolve, take_snapshot, watch_output_directory

USAGE = """\
Usage: buildrun <command> <output_dir> [--target NAME] [--verbose] [-- child args...]

Commands:
  watch   Watch <output_dir> and (re)start the emitted program after every build.
  run     Handle the current output once, without watch mode.
  check   Print which artifact would run, or why none can.
  help    Show this message.
"""


class UsageError(ValueError):
    pass


def parse_arguments(argv: Sequence[str]) -> Dict[str, Any]:
    """
    Parses `<command> <output_dir> [--target NAME] [--verbose] [-- args...]`.

    :param argv: Arguments without the program name.
    :return dict: The parsed options.
    :raises UsageError: On missing or unknown arguments.
    """
    args = list(argv)
    child_args: Optional[List[str]] = None
    if "--" in args:
        split_at = args.index("--")
        args, child_args = args[:split_at], args[split_at + 1:]

    if not args:
        raise UsageError("No command given.")

    options: Dict[str, Any] = {
        "command": args.pop(0).lower(),
        "output_dir": None,
        "target": None,
        "verbose": config.VERBOSE_LOGGING,
        "child_args": child_args,
    }

    while args:
        arg = args.pop(0)
        if arg == "--verbose":
            options["verbose"] = True
        elif arg == "--target":
            if not args:
                raise UsageError("--target needs a value.")
            options["target"] = args.pop(0)
        elif arg.startswith("--target="):
            options["target"] = arg.split("=", 1)[1]
        elif arg.startswith("-"):
            raise UsageError(f"Unknown option '{arg}'.")
        elif options["output_dir"] is None:
            options["output_dir"] = Path(arg)
        else:
            raise UsageError(f"Unexpected argument '{arg}'.")

    if options["command"] != "help" and options["output_dir"] is None:
        raise UsageError("No output directory given.")
    return options


def _session_spec(options: Dict[str, Any]) -> TargetSpec:
    return TargetSpec.from_settings(config, options["target"], options["child_args"])


def run_watch(options: Dict[str, Any]) -> int:
    """Runs a watch session until interrupted."""
    output_dir: Path = options["output_dir"].resolve()
    setproctitle.setproctitle(f"buildrun - watch {output_dir}")

    session = WatchSession(_session_spec(options))
    stop_event = threading.Event()
    try:
        watch_output_directory(output_dir, session, stop_event)
    except KeyboardInterrupt:
        log.warning("Exiting watch due to KeyboardInterrupt.")
    finally:
        stop_event.set()
    return 0


def run_once(options: Dict[str, Any]) -> int:
    """Feeds the current output to a session that never entered watch mode."""
    session = WatchSession(_session_spec(options))
    session.on_build_finished(take_snapshot(options["output_dir"]))
    return 0


def run_check(options: Dict[str, Any]) -> int:
    """Resolves the current output and reports the result."""
    spec = _session_spec(options)
    try:
        target = resolve(take_snapshot(options["output_dir"]), spec)
    except ResolutionError as e:
        print(f"[{e.kind}] {e}")
        return 1

    print(f"{target.name} -> {target.path}")
    if spec.extra_args:
        print(f"  args: {' '.join(spec.extra_args)}")
    return 0


def print_help(options: Optional[Dict[str, Any]] = None) -> int:
    print(USAGE)
    return 0


COMMANDS: Dict[str, Callable[[Dict[str, Any]], int]] = {
    "watch": run_watch,
    "run": run_once,
    "check": run_check,
    "help": print_help,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """The main entry point for the command-line tool."""
    argv = sys.argv[1:] if argv is None else argv
    try:
        options = parse_arguments(argv)
    except UsageError as e:
        print(f"Error: {e}\n")
        print(USAGE)
        return 2

    setup_logging(logging.DEBUG if options["verbose"] else logging.INFO)
    log.debug(f"Received command: {options['command']}, options: {options}")

    command = COMMANDS.get(options["command"])
    if command is None:
        log.info(f"Unknown command: '{options['command']}'. Type 'buildrun help' for a list of commands.")
        return 2

    try:
        return command(options)
    except Exception as e:
        log.error(f"An unexpected error occurred: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
