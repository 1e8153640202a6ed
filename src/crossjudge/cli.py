"""CLI entry point for crossjudge.

Registered as the ``crossjudge`` console script. Loads an arena config
YAML file, applies command-line overrides, runs the arena, and prints
which generators each judge preferred.
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys
from typing import Any

import yaml

from crossjudge.arena import ArenaError, run_arena_sync
from crossjudge.models import ArenaConfig, ArenaResult


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the crossjudge command."""
    parser = argparse.ArgumentParser(
        prog="crossjudge",
        description="Generate content with many models and have them judge each other.",
    )
    parser.add_argument(
        "--config",
        required=True,
        help="Path to the arena config YAML file.",
    )
    parser.add_argument(
        "--word",
        action="append",
        dest="words",
        default=None,
        help="Seed word (repeatable). Random words are drawn when omitted.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for reproducible word sampling, batching and judge order.",
    )
    parser.add_argument(
        "--log-outputs",
        action="store_true",
        help="Log every step's outputs.",
    )
    return parser


def _load_yaml(path: str) -> dict[str, Any]:
    """Load a YAML file that must contain a mapping.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file does not parse to a dict.
    """
    file_path = Path(path)
    if not file_path.exists():
        msg = f"config file not found: {path}"
        raise FileNotFoundError(msg)

    with open(file_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        msg = f"config file must contain a YAML mapping, got {type(data).__name__}"
        raise ValueError(msg)

    return data


def _print_stats(result: ArenaResult) -> None:
    """Print the seed words and each judge's win counts, most wins first.

    Args:
        result: Outcome of the arena run.
    """
    print(f"Words: {', '.join(result.words)}")
    for judge, wins in result.stats.items():
        print(f"{judge}:")
        for generator, count in sorted(wins.items(), key=lambda kv: -kv[1]):
            print(f"\t- {generator}: {count}")


def main(argv: list[str] | None = None) -> int:
    """Run the arena from the command line.

    Returns:
        Exit code: 0 on success, 1 on error.
    """
    args = _build_parser().parse_args(argv)

    try:
        data = _load_yaml(args.config)
        if args.words:
            data["words"] = args.words
        if args.seed is not None:
            data["seed"] = args.seed
        if args.log_outputs:
            data["log_outputs"] = True
        config = ArenaConfig(**data)

        result = run_arena_sync(config)
        _print_stats(result)

    except ArenaError as exc:
        print(f"Arena error: {exc}", file=sys.stderr)
        print(f"Diagnostics: {exc.diagnostics}", file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
