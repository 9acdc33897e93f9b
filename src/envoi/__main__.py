"""Command-line entry point for envoi services.

Examples:
    ```bash
    python -m envoi api
    python -m envoi api --once
    python -m envoi api --config config/services/api.yaml --log-level DEBUG
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, NamedTuple

from pydantic import ValidationError

from envoi.core import Brotr, MetricsServer
from envoi.core.base_service import BaseService
from envoi.core.exceptions import ConfigurationError, DatabaseError
from envoi.core.logger import Logger, StructuredFormatter
from envoi.core.yaml import load_yaml
from envoi.models.constants import ServiceName
from envoi.services.api import Api


CONFIG_BASE = Path("config")
CORE_CONFIG = CONFIG_BASE / "brotr.yaml"


class ServiceEntry(NamedTuple):
    """A runnable service and its default config path."""

    cls: type[BaseService[Any]]
    config_path: Path


SERVICE_REGISTRY: dict[str, ServiceEntry] = {
    ServiceName.API: ServiceEntry(Api, CONFIG_BASE / "services" / "api.yaml"),
}

logger = Logger("cli")


async def run_service(
    service_name: str,
    service_class: type[BaseService[Any]],
    brotr: Brotr,
    service_dict: dict[str, Any],
    *,
    once: bool,
) -> int:
    """Run one cycle (``once``) or loop until a shutdown signal.

    Continuous mode also serves Prometheus metrics when enabled.

    Returns:
        Exit code: 0 on success, 1 on failure.
    """
    service = service_class.from_dict(service_dict, brotr=brotr)

    if once:
        try:
            async with service:
                await service.run()
            logger.info(f"{service_name}_completed")
            return 0
        except Exception as e:  # CLI error boundary for one-shot mode
            logger.error(f"{service_name}_failed", error=str(e))
            return 1

    metrics_config = service.config.metrics
    metrics_server = MetricsServer(metrics_config)
    await metrics_server.start()
    if metrics_server.is_running:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.run_forever()
        return 0
    except Exception as e:  # CLI error boundary for continuous mode
        logger.error(f"{service_name}_failed", error=str(e))
        return 1
    finally:
        if metrics_server.is_running:
            await metrics_server.stop()
            logger.info("metrics_server_stopped")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="envoi", description="envoi service runner")
    parser.add_argument("service", choices=list(SERVICE_REGISTRY), help="Service to run")
    parser.add_argument(
        "--config",
        type=Path,
        help="Service config path (default: config/services/<service>.yaml)",
    )
    parser.add_argument(
        "--brotr-config",
        type=Path,
        default=CORE_CONFIG,
        help=f"Brotr config path (default: {CORE_CONFIG})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run once and exit (default: run continuously)",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Install a ``StructuredFormatter`` on the root logger.

    Output from ``Logger`` and from plain ``logging.getLogger()`` callers
    (the algod client) ends up in the same ``level name message key=value``
    format.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load *path*, or return ``{}`` when the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(str(path))


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    entry = SERVICE_REGISTRY[args.service]
    config_path = args.config or entry.config_path

    try:
        brotr_dict = _load_yaml_dict(args.brotr_config)
        service_dict = _load_yaml_dict(config_path)
        brotr = Brotr.from_dict(brotr_dict) if brotr_dict else Brotr()
    except (ConfigurationError, ValidationError) as e:
        logger.error("config_invalid", error=str(e))
        return 1

    try:
        async with brotr:
            return await run_service(
                service_name=args.service,
                service_class=entry.cls,
                brotr=brotr,
                service_dict=service_dict,
                once=args.once,
            )
    except (ConfigurationError, ValidationError) as e:
        logger.error("config_invalid", error=str(e))
        return 1
    except DatabaseError as e:
        logger.error("connection_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
