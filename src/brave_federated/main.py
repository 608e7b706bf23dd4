"""Main entry point for the federated learning client."""

import asyncio

from brave_federated import __version__
from brave_federated.config import get_settings
from brave_federated.logging import get_logger, setup_logging
from brave_federated.prefs import PrefService
from brave_federated.service import FederatedLearningService


async def main() -> None:
    """Run the service until cancelled."""
    setup_logging()
    log = get_logger("brave_federated.main")

    settings = get_settings()
    features = settings.features()
    log.info(
        "starting_brave_federated",
        version=__version__,
        environment=settings.environment,
        endpoint=settings.fl_endpoint,
        local_state=settings.local_state_path,
    )

    prefs = PrefService(settings.local_state_path)
    FederatedLearningService.register_local_state_prefs(
        prefs,
        p3a_enabled=settings.p3a_enabled,
        ads_enabled=settings.ads_enabled,
    )

    service = FederatedLearningService(
        prefs=prefs,
        features=features,
        platform=settings.platform_override,
        endpoint=settings.fl_endpoint,
        timeout=settings.fl_request_timeout,
    )

    if not service.start():
        log.info("brave_federated_idle")
        return

    try:
        await asyncio.Event().wait()
    finally:
        service.close()
        log.info("brave_federated_stopped")


def run() -> None:
    """Run the application."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
