#!/usr/bin/env python3
"""
Run One Ingestion Cycle
=======================

Polls the configured mailbox once, outside the API process, and prints the
cycle summary as JSON. Uses the same settings (.env / environment) as the
service.
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from helpdesk.config import settings
from helpdesk.infrastructure.database import init_database, close_database, create_tables
from helpdesk.ingestion.application import CycleSummaryResponse
from helpdesk.ingestion.infrastructure import IngestionRulesManager
from helpdesk.main import build_notifier, build_ingestion_service
from helpdesk.shared.infrastructure.logging import setup_logging


async def main() -> int:
    setup_logging(settings.log_level, settings.environment)

    if not settings.mailbox_configured:
        print("IMAP_HOST, IMAP_USER and IMAP_PASSWORD must be set", file=sys.stderr)
        return 2

    init_database()
    if not settings.ticket_api_base_url:
        await create_tables()

    rules_manager = IngestionRulesManager.from_settings(settings)
    rules_manager.load(settings.ingestion_rules_path)

    notifier = build_notifier(settings, rules_manager)
    service, api_client = build_ingestion_service(settings, rules_manager, notifier)

    try:
        summary = await service.run_cycle()
        # Let assignment/resolution mails go out before exiting
        await notifier.drain()
    finally:
        if api_client:
            await api_client.close()
        await close_database()

    response = CycleSummaryResponse.from_summary(summary)
    print(json.dumps(response.model_dump(mode="json"), indent=2))
    return 1 if summary.error else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
