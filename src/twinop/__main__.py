"""Command line entry point: ``python -m twinop`` / ``twin-operator``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from collections.abc import Sequence

from twinop.config import OperatorConfig
from twinop.exceptions import TwinOpConfigError, TwinOpError, TwinOpTemplateError
from twinop.operator import Operator
from twinop.template import load_template

_LOG = logging.getLogger("twinop")

EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twin-operator",
        description="Keep digital twin things in line with the device registry.",
    )
    parser.add_argument("--template", help="Thing template YAML (env TWINOP_TEMPLATE)")
    parser.add_argument("--application", help="Registry application (env TWINOP_APPLICATION)")
    parser.add_argument("--interval", type=float, help="Seconds between full scans (env TWINOP_INTERVAL)")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("TWINOP_LOG_LEVEL", "INFO"),
        help="Logging level (env TWINOP_LOG_LEVEL, default INFO)",
    )
    parser.add_argument("--once", action="store_true", help="Run a single scan and exit, without MQTT")
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {}
    if args.template:
        overrides["template_path"] = args.template
    if args.application:
        overrides["application"] = args.application
    if args.interval is not None:
        overrides["interval"] = args.interval
    return overrides


async def _run_until_signalled(operator: Operator) -> None:
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    assert task is not None

    def stop_handler() -> None:
        _LOG.info("Shutdown requested")
        task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_handler)
    try:
        await operator.run()
    except asyncio.CancelledError:
        pass
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = OperatorConfig.from_env(**_overrides(args))
        config.validate()
    except (TwinOpConfigError, ValueError) as exc:
        _LOG.error("Invalid configuration: %s", exc)
        return EXIT_CONFIG
    _LOG.info("Configuration: %s", config.redacted())

    try:
        template = load_template(config.template_path)
    except TwinOpTemplateError as exc:
        _LOG.error("Failed to load template: %s", exc)
        return EXIT_CONFIG

    operator = Operator(config, template)
    try:
        if args.once:
            reconciled = asyncio.run(operator.run_once())
            _LOG.info("Reconciled %d device(s)", reconciled)
        else:
            asyncio.run(_run_until_signalled(operator))
    except TwinOpError as exc:
        _LOG.error("Operator failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
