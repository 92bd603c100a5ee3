"""
Espiritualizei — Entry Point.

Single entry point: `python main.py` wires the services from .env, reports
which capabilities are available and resumes the stored session, if any.
"""

import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.config import settings
from src.core.app_service import build_app_service

logger = logging.getLogger("espiritualizei")


async def _run() -> None:
    logger.info(
        "Capabilities: backend=%s, llm=%s, places=%s",
        "on" if settings.backend_configured else "off (local fallback)",
        "on" if settings.llm_configured else "off (fallback content)",
        "on" if settings.places_configured else "off (simulated)",
    )

    service = build_app_service(settings)
    restored = await service.restore()
    if restored is None:
        logger.info("No active session: onboarding or login required")
    else:
        coordinator = restored.coordinator
        logger.info(
            "Resumed session of %s (level %d, %d XP, %d routine items, %d intentions)",
            coordinator.user.name,
            coordinator.user.level,
            coordinator.user.current_xp,
            len(coordinator.routine),
            len(coordinator.intentions),
        )
        if restored.show_daily_inspiration:
            logger.info("Daily inspiration is due today")
    await service.shutdown()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
