#!/usr/bin/env python3
#  Copyright (c) Meta Platforms, Inc. and affiliates.
import argparse
from importlib.metadata import PackageNotFoundError, version

from .bisect.cli import (
    _add_bisect_args,
    _validate_args as _validate_bisect_args,
    bisect_command,
)


def _get_package_version() -> str:
    try:
        return version("canarybisect")
    except PackageNotFoundError:
        return "0+unknown"


def main(argv=None):
    pkg_version = _get_package_version()
    prog_name = "canarybisect"

    parser = argparse.ArgumentParser(
        prog=prog_name,
        description="canarybisect: find the canary build that introduced a regression",
        epilog=(
            "Examples:\n"
            f"  {prog_name} bisect --from 1.45.0 --to 1.46.0 is_good.ts\n"
            f"  {prog_name} bisect -f 3f2e1d0 -t 9a8b7c6 --checkout ~/src/deno "
            "is_good.ts\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {pkg_version}",
        help="Show program's version number and exit",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # bisect subcommand
    bisect_parser = subparsers.add_parser(
        "bisect",
        help="Bisect canary builds to find a regression",
        description=(
            "Bisect canary builds between two versions to find the first commit\n"
            "showing the new behavior. Commits without a canary build, or for\n"
            "which the test script exits with 125, are skipped."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_bisect_args(bisect_parser)
    bisect_parser.set_defaults(func="bisect")

    args = parser.parse_args(argv)

    if args.func == "bisect":
        _validate_bisect_args(args, bisect_parser)
        exit_code = bisect_command(args)
        raise SystemExit(exit_code)
    else:
        raise RuntimeError(f"Unknown command: {args.func}")


if __name__ == "__main__":
    main()  # pragma: no cover
