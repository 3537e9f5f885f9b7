"""
main.py — agentloop Entry Point

Usage:
    agentloop                               # CLI REPL, default settings
    python -m agentloop --log-level DEBUG   # Verbose logging
    agentloop --config path/to/config.yaml
    agentloop --max-steps 50                # Override agent.max_steps
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="agentloop",
        description="agentloop — think/act agent with tool calling and planning",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $AGENTLOOP_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Override agent.max_steps from config",
    )
    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace):
    """
    Load config, validate it fully, and set up logging.
    Returns (settings, log) ready for use.

    Exits with code 1 (after printing a clear message) if:
      - config.yaml has invalid values (Pydantic ValidationError)
      - cross-field problems are found (ConfigError from validate_all())
    """
    from pydantic import ValidationError

    from agentloop.config.settings import ConfigError, load_settings
    from agentloop.observability.logger import get_logger, setup_logging

    # -- Load and parse -------------------------------------------------------
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {e['loc'][-1] if e['loc'] else '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\n❌  Config validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your .env file and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except (OSError, ValueError, TypeError) as exc:
        print(
            f"\n❌  Failed to load config: {type(exc).__name__}: {exc}\n",
            file=sys.stderr,
        )
        sys.exit(1)

    if args.max_steps is not None:
        if args.max_steps <= 0:
            print(f"\n❌  --max-steps must be positive, got {args.max_steps}\n", file=sys.stderr)
            sys.exit(1)
        settings.agent.max_steps = args.max_steps

    # -- Cross-field validation -----------------------------------------------
    try:
        settings.validate_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    # -- Logging --------------------------------------------------------------
    # CLI --log-level flag overrides config.yaml
    setup_logging(
        level=args.log_level or settings.log_level,
        log_dir=settings.log_dir,
        json_format=settings.logging.json_format,
        console_output=settings.logging.console_output,
        max_bytes=settings.logging.max_file_size_mb * 1024 * 1024,
        backup_count=settings.logging.backup_count,
    )

    log = get_logger("agentloop.main")
    return settings, log


async def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    settings, log = bootstrap(args)

    log.info(
        "agentloop.starting",
        agent=settings.agent_name,
        llm_provider=settings.llm.provider,
        llm_model=settings.llm.model,
        max_steps=settings.agent.max_steps,
    )

    # ── Ensure data directories exist ─────────────────────────────────────────
    for path in (settings.log_dir, Path(settings.tools.terminal.working_dir)):
        path.expanduser().mkdir(parents=True, exist_ok=True)

    from agentloop.brain.llm_client import LLMError
    from agentloop.interfaces.cli import run_cli

    try:
        await run_cli(settings, log)
    except LLMError as e:
        log.error("agentloop.llm_init_failed", error=str(e), error_type=type(e).__name__)
        print(
            f"\n❌  Failed to initialize LLM provider '{settings.llm.provider}': {e}\n",
            file=sys.stderr,
        )
        return 1

    return 0


def cli() -> None:
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
