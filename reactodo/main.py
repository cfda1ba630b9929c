# Reactodo
# Copyright (C) 2026 StrateCode
# Licensed under the GNU Affero General Public License v3 (AGPLv3)

"""
Main entry point for the Reactodo service.

Loads configuration, wires dependencies and serves the HTTP API until
interrupted.
"""

import asyncio

from dotenv import load_dotenv

from reactodo.api import ReactodoAPI
from reactodo.config import ReactodoConfig
from reactodo.container import build_dependencies
from reactodo.logging_config import get_logger, setup_logging


logger = get_logger(__name__)


async def main() -> None:
    """Main application entry point."""
    load_dotenv(override=False)

    try:
        config = ReactodoConfig.from_env()
        config.validate()
    except KeyError as e:
        logger.error(f"Missing required environment variable: {e}")
        raise
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        raise

    setup_logging(log_level=config.log_level, log_format=config.log_format)

    deps = build_dependencies(config)
    await deps.start()

    api = ReactodoAPI(deps)
    runner = await api.run(host=config.host, port=config.port)
    logger.info("Reactodo service started", extra={
        'app_base_url': config.app_base_url,
        'storage': 'postgres' if deps.database else 'memory',
        'signature_verification': deps.config.slack_signing_secret is not None,
    })

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        await deps.close()
        logger.info("Reactodo service stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
