#!/usr/bin/env python3
"""Pensado para cron, por ejemplo cada 15 minutos: */15 * * * *."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from comanda.core.database import SessionLocal  # noqa: E402
from comanda.core.logging_setup import configure_logging  # noqa: E402
from comanda.services.daily_summary import send_daily_summaries  # noqa: E402
from comanda.whatsapp.service import WhatsAppService  # noqa: E402

logger = logging.getLogger("comanda.scripts.daily_summary")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Envía el resumen diario a los negocios que ya cerraron.")
    parser.add_argument("--log-level", default=None, help="Nivel de log (INFO, DEBUG...)")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging(args.log_level)

    db = SessionLocal()
    try:
        sent = send_daily_summaries(db, WhatsAppService())
    finally:
        db.close()

    logger.info("daily summaries sent=%s", len(sent))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
