"""
run_generation.py — manual end-to-end check of the generation dispatcher.

Sends one message through quota gate → dispatcher → fallback using the
providers configured in .env and prints the attempt trail plus the response.
Usage counters are kept in memory unless --db is given.

Usage:
    python run_generation.py "Como funciona o ranking da plataforma?"
    python run_generation.py --plan engajado --user u-123 --db "Qual a taxa Selic hoje?"
"""

import argparse
import asyncio
import json
import logging
import sys

import httpx

from app.core.config import settings, validate_settings_for_production
from app.core.exceptions import ConfigurationError
from app.core.logging import setup_logging
from app.core.sentry import init_sentry
from app.gateway.dispatcher import Dispatcher
from app.gateway.registry import ProviderRegistry
from app.gateway.routing import classify_route
from app.gateway.types import ProviderName
from app.services.generation import GenerationService, build_generation_service
from app.services.quota import QuotaGate
from app.services.usage_store import InMemoryUsageStore

logger = logging.getLogger("run_generation")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("message")
    parser.add_argument("--user", default="cli-user")
    parser.add_argument("--plan", default="free")
    parser.add_argument("--image", action="append", default=[], help="image URL (repeatable); routes to vision models")
    parser.add_argument("--db", action="store_true", help="count usage in PostgreSQL instead of memory")
    return parser.parse_args(argv)


async def main(argv: list[str]) -> int:
    args = _parse_args(argv)
    setup_logging()
    init_sentry()
    validate_settings_for_production()

    async with httpx.AsyncClient() as client:
        try:
            if args.db:
                service = build_generation_service(settings, client=client)
            else:
                registry = ProviderRegistry.from_settings(settings)
                service = GenerationService(
                    quota_gate=QuotaGate(InMemoryUsageStore(), settings.quota_day_boundary),
                    dispatcher=Dispatcher(
                        registry,
                        client=client,
                        adapter_kwargs={
                            ProviderName.OPENROUTER.value: {"referer": settings.app_referer, "title": settings.app_title}
                        },
                    ),
                    system_prompt=settings.default_system_prompt,
                )
        except ConfigurationError as e:
            logger.error("Cannot start: %s", e)
            return 2

        logger.info("Route profile: %s", classify_route(args.message).value)

        response = await service.generate(args.user, args.plan, args.message, image_urls=args.image)
        print(json.dumps(response.attempt_summary(), indent=2, ensure_ascii=False))
        print(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
        return 0 if response.success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
