"""Main entry point for AdForge AI.

Builds the dispatcher from the environment, probes every configured provider
and logs a health summary, optionally sweeps expired cache entries, then
shuts down cleanly.
"""

import argparse
import asyncio

from adforge_ai.config import get_settings
from adforge_ai.dispatcher import build_dispatcher, build_store
from adforge_ai.logging import get_logger, setup_logging
from adforge_ai.storage.base import StorageError


async def main(sweep: bool = False) -> int:
    """Main application entry point.

    Args:
        sweep: Run one expired-entry sweep after the health check.

    Returns:
        Process exit code: 0 when at least one provider is healthy.
    """
    setup_logging()
    log = get_logger("adforge_ai.main")

    settings = get_settings()
    log.info(
        "starting_adforge_ai",
        environment=settings.environment,
        storage_backend=settings.storage_backend,
    )

    store = build_store(settings)
    try:
        await store.initialize()
    except StorageError as e:
        log.error("store_initialization_failed", error=str(e))
        return 1

    dispatcher = build_dispatcher(settings, store=store)
    try:
        statuses = await dispatcher.selector.all_health_statuses(refresh=True)
        for ptype, status in statuses.items():
            log.info(
                "provider_health",
                provider=ptype.value,
                healthy=status.healthy,
                error=status.error,
                available_quota=status.available_quota,
            )
        healthy = [ptype.value for ptype, status in statuses.items() if status.healthy]
        log.info("health_summary", healthy=healthy, registered=len(statuses))

        if sweep:
            removed = await dispatcher.cache.clear_expired()
            log.info("cache_sweep_complete", removed=removed)
    finally:
        await dispatcher.close()
        log.info("adforge_ai_stopped")

    return 0 if healthy else 1


def run() -> None:
    """Run the application."""
    parser = argparse.ArgumentParser(description="AdForge AI provider health check")
    parser.add_argument(
        "--sweep", action="store_true", help="delete expired cache entries after the check"
    )
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(sweep=args.sweep)))


if __name__ == "__main__":
    run()
