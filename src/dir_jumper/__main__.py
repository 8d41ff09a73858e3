from __future__ import annotations

import argparse
import io
import logging
import os
import sys
from pathlib import Path

from dir_jumper.jumper import Jumper
from dir_jumper.jumper import NoMatchError
from dir_jumper.jumpercompletion import CompletionAdapter
from dir_jumper.jumperconfig import default_config_path
from dir_jumper.jumperconfig import load_config
from dir_jumper.jumperconfig import write_new_config
from dir_jumper.jumpershell import SHELL_HOOKS
from dir_jumper.jumpershell import default_rc_file
from dir_jumper.jumpershell import shell_init
from dir_jumper.jumpershell import strip_hook_block
from dir_jumper.jumpershell import write_hook_block

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("dir_jumper")


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="dir-jumper",
        description="Jump to frequently and recently visited directories.",
    )
    parser.add_argument(
        "query",
        nargs="*",
        help="Tokens to match against visited directories, in order.",
    )

    actions = parser.add_mutually_exclusive_group()
    actions.add_argument(
        "--add",
        metavar="PATH",
        help="Record a visit to PATH. Never fails.",
    )
    actions.add_argument(
        "--stat",
        help="Show all known directories and their weights.",
        default=False,
        action="store_true",
    )
    actions.add_argument(
        "--completion",
        metavar="PARTIAL",
        help="Print ranked candidates for shell completion.",
    )
    actions.add_argument(
        "--purge",
        help="Forget directories that no longer exist.",
        default=False,
        action="store_true",
    )
    actions.add_argument(
        "--increase",
        metavar="WEIGHT",
        help="Increase the weight of the current directory. Default: 10.",
        type=float,
        nargs="?",
        const=10.0,
    )
    actions.add_argument(
        "--decrease",
        metavar="WEIGHT",
        help="Decrease the weight of the current directory. Default: 15.",
        type=float,
        nargs="?",
        const=15.0,
    )
    actions.add_argument(
        "--shell-init",
        metavar="SHELL",
        help="Print the hook script for SHELL (bash, zsh, fish).",
        choices=sorted(SHELL_HOOKS),
    )
    actions.add_argument(
        "--install-hook",
        metavar="SHELL",
        help="Load the hook script from the rc file of SHELL.",
        choices=sorted(SHELL_HOOKS),
    )
    actions.add_argument(
        "--uninstall-hook",
        metavar="SHELL",
        help="Remove the hook script from the rc file of SHELL.",
        choices=sorted(SHELL_HOOKS),
    )
    actions.add_argument(
        "--make-config",
        help="Create a default configuration file.",
        default=False,
        action="store_true",
    )

    parser.add_argument(
        "--detach",
        help="With --add, record the visit in a detached background process.",
        default=False,
        action="store_true",
    )
    parser.add_argument(
        "--rc-file",
        help="The rc file used by --install-hook and --uninstall-hook.",
    )
    parser.add_argument(
        "--config",
        help="The path to the configuration file.",
    )
    parser.add_argument(
        "--debug",
        help="Enable debug logging.",
        default=False,
        action="store_true",
    )
    return parser


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(args)


def add_file_handler_to_logging(log_path: str, level: int) -> None:
    """Add a file handler writing to log_path to the root logger."""
    os.makedirs(os.path.dirname(os.path.abspath(log_path)), exist_ok=True)
    file_handler = logging.FileHandler(
        log_path, encoding="utf-8", errors="backslashreplace"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logging.getLogger().addHandler(file_handler)


def error(message: str) -> None:
    """Print an error message to stderr."""
    print(f"dir-jumper: {message}", file=sys.stderr)


def record_visit(args: argparse.Namespace) -> int:
    """Record a visit. Failures go to the side log only, never to the shell."""
    root = logging.getLogger()
    if args.debug:
        logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT)
    else:
        # Keeps logging's last resort handler from writing to the shell.
        root.addHandler(logging.NullHandler())
    root.setLevel(logging.DEBUG if args.debug else logging.INFO)

    try:
        config = load_config(args.config)
        add_file_handler_to_logging(
            config.log_path,
            logging.DEBUG if args.debug else logging.WARNING,
        )
        jumper = Jumper(config)

        if args.detach:
            jumper.record_visit_detached(args.add)
        else:
            jumper.record_visit(args.add)

    except Exception:
        logger.exception("Failed to record visit to %s", args.add)

    return 0


def install_hook(args: argparse.Namespace) -> int:
    """Add or remove the managed block in the shell rc file."""
    shell = args.install_hook or args.uninstall_hook
    if args.rc_file:
        rc_file = Path(args.rc_file).expanduser()
    else:
        rc_file = default_rc_file(shell)

    if args.install_hook:
        if write_hook_block(shell, rc_file):
            print(f"Updated {rc_file}. Open a new shell to start jumping.")
        else:
            print(f"{rc_file} already loads dir-jumper.")

    elif strip_hook_block(rc_file):
        print(f"Removed dir-jumper from {rc_file}.")

    else:
        print(f"{rc_file} does not load dir-jumper.")

    return 0


def print_stats(jumper: Jumper) -> None:
    """Print every known directory with its weight, heaviest first."""
    records, total_weight = jumper.stats()
    for record in records:
        print(record)

    print("________________________________________\n")
    print(f"{total_weight:>10.1f}:  total weight")
    print(f"{len(records):>10d}:  number of entries")
    print(f"data: {jumper.data_path}")


def run(args: argparse.Namespace) -> int:
    """Run an interactive command against the store."""
    config = load_config(args.config)
    jumper = Jumper(config)

    if args.stat:
        print_stats(jumper)

    elif args.completion is not None:
        adapter = CompletionAdapter(jumper, config.completion_limit)
        print(adapter.render(args.completion), end="")

    elif args.purge:
        print(f"Purged {jumper.purge()} entries.")

    elif args.increase is not None or args.decrease is not None:
        delta = args.increase if args.increase is not None else -args.decrease
        record = jumper.adjust(os.getcwd(), delta)
        if record is not None:
            print(f"{record.weight:.1f}:  {record.path}")

    elif not args.query:
        build_parser().print_usage(sys.stderr)
        return 2

    else:
        print(jumper.resolve(args.query))

    return 0


def main(*, cli_args: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(cli_args)

    if args.add is not None:
        return record_visit(args)

    if args.shell_init:
        print(shell_init(args.shell_init), end="")
        return 0

    if args.make_config:
        write_new_config(args.config or default_config_path())
        return 0

    # Directory names are OS bytes and may not decode cleanly.
    if isinstance(sys.stdout, io.TextIOWrapper):
        sys.stdout.reconfigure(errors="surrogateescape")

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    try:
        if args.install_hook or args.uninstall_hook:
            return install_hook(args)

        return run(args)

    except NoMatchError as err:
        error(str(err))
        return 1

    except OSError as err:
        error(str(err))
        return 1

    except ValueError as err:
        error(str(err))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
