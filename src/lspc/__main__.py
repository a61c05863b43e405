"""CLI entry point for lspc."""

import sys


def main() -> int:
    """Main entry point for the lspc CLI."""
    from lspc.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
