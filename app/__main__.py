"""Run one crawl job from a JSON file: ``python -m app job.json [-o records.jsonl]``."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import httpx
from pydantic import ValidationError

from app.config import Settings
from app.exceptions.custom import NoStartUrlsError
from app.schemas.job import JobInput
from app.services.runner import build_job_runner

logger = logging.getLogger("app")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m app",
        description="Crawl hotel websites and extract contact, company and team facts.",
    )
    parser.add_argument("job", type=Path, help="JSON job input (startUrls + options)")
    parser.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Write one JSON record per line to this file instead of stdout",
    )
    return parser.parse_args(argv)


async def _run(job_input: JobInput, settings: Settings, out) -> None:
    def emit(record: dict) -> None:
        out.write(json.dumps(record, ensure_ascii=False) + "\n")
        out.flush()

    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        runner = build_job_runner(client, settings)
        await runner.run(job_input, emit)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        job_input = JobInput.model_validate_json(args.job.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.error("Cannot read job input %s: %s", args.job, e)
        return 1

    out = args.output.open("w", encoding="utf-8") if args.output else sys.stdout
    try:
        asyncio.run(_run(job_input, settings, out))
    except NoStartUrlsError as e:
        logger.error(e.message)
        return 1
    finally:
        if args.output:
            out.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
