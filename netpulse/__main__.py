"""
Command line entry point: analyze a metrics batch stored as JSON.

    python -m netpulse batch.json --horizon 10

The batch has the same shape the collection layer sends to the orchestrator:
{"deviceId": "...", "metrics": {"latency": [{"timestamp": ..., "value": ...}]}}
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from netpulse.analytics import AnalyticsOrchestrator
from netpulse.core.config import AnalyticsConfig, config
from netpulse.core.exceptions import InvalidInputError
from netpulse.core.logging_config import setup_logging


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="NetPulse telemetry analytics")
    parser.add_argument("batch", type=Path, help="Path to a metrics batch JSON file")
    parser.add_argument("--horizon", type=int, default=None, help="Forecast steps to produce")
    parser.add_argument("--seasonality", action="store_true", help="Include seasonal decomposition")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args(argv)

    logger = setup_logging(level=args.log_level)

    overrides = config.analytics.model_dump()
    if args.horizon is not None:
        overrides["forecast"]["horizon"] = args.horizon
    if args.seasonality:
        overrides["include_seasonality"] = True
    try:
        settings = AnalyticsConfig.model_validate(overrides)
    except ValidationError as e:
        logger.error(f"Invalid settings: {e}")
        return 2

    try:
        payload = json.loads(args.batch.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read batch {args.batch}: {e}")
        return 2

    try:
        report = AnalyticsOrchestrator(settings=settings).process_metrics(payload)
    except InvalidInputError as e:
        logger.error(f"{e.code}: {e}")
        return 2

    print(report.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
