"""
IngestCommand — Feed NDJSON event data through the ingestion boundary

Each non-blank line is one JSON object of event fields (camelCase or
snake_case). Timestamps and ids are assigned on ingest, as for any
logged event. Everything is flushed before the command returns; a
final flush failure is reported as an error (exit 1).

    tally ingest events.ndjson
    producer | tally ingest -
"""

import sys
from typing import IO, Tuple

import orjson
from loguru import logger

from .base import BaseCommand
from ..core.events import InteractionEvent
from ..errors import FlushError


COMMAND_NAME = 'ingest'


class IngestCommand(BaseCommand):

    def ingest(self, source: str) -> int:
        if source == '-':
            logged, failed = self._ingest_stream(sys.stdin)
        else:
            with open(source, 'r', encoding='utf-8') as f:
                logged, failed = self._ingest_stream(f)

        written = self.service.cleanup()
        print(f"Ingested {logged} event(s), {written} flushed, {failed} rejected.")
        return 1 if failed else 0

    def _ingest_stream(self, stream: IO[str]) -> Tuple[int, int]:
        logged = failed = 0
        for line_number, line in enumerate(stream, start=1):
            if not line.strip():
                continue
            try:
                data = orjson.loads(line)
            except orjson.JSONDecodeError as e:
                logger.warning("Skipping line {}: {}", line_number, e)
                failed += 1
                continue
            if not isinstance(data, dict):
                logger.warning("Skipping line {}: expected a JSON object", line_number)
                failed += 1
                continue

            try:
                event = InteractionEvent.create(data)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning("Skipping line {}: {}", line_number, e)
                failed += 1
                continue

            try:
                self.service.buffer.add(event)
            except FlushError as e:
                # Still queued; cleanup() retries it and reports a final failure
                logger.warning("Line {} queued, flush deferred: {}", line_number, e)
            logged += 1
        return logged, failed


def register_parser(subparsers):
    """Register ingest command parser."""
    p = subparsers.add_parser('ingest', help='Log NDJSON event data from a file or stdin')
    p.add_argument('source', metavar='FILE', help="NDJSON file, or '-' for stdin")
    return p


def handle(cli, args):
    """Handle ingest command dispatch."""
    return IngestCommand(cli).ingest(args.source)
