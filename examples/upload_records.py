# examples/upload_records.py
"""Upload a JSON-lines file of records to one storage collection.

    BATCHSYNC_COLLECTION_URL=https://storage.example.com/1.5/42/storage/bookmarks \
    python examples/upload_records.py records.jsonl --user alice --password secret
"""
from __future__ import annotations

import argparse
from pathlib import Path

import anyio
import httpx
from mcp.server.fastmcp.utilities.logging import configure_logging, get_logger

from batchsync import BatchUploadSession, HttpxTransport, Record, UploaderSettings
from batchsync.errors import ErrorData
from batchsync.shared._httpx_utils import create_batchsync_http_client

logger = get_logger("examples.upload_records")


def load_records(path: Path) -> list[Record]:
    return [Record.model_validate_json(line) for line in path.read_text().splitlines() if line.strip()]


async def on_payload_outcome(
    succeeded: tuple[str, ...], failed: dict[str, ErrorData], is_commit: bool, is_last_payload: bool
) -> None:
    logger.info(
        "payload done: %d succeeded so far, %d failed here (commit=%s, last=%s)",
        len(succeeded),
        len(failed),
        is_commit,
        is_last_payload,
    )


async def main(path: Path, user: str, password: str, last_modified: float | None) -> None:
    settings = UploaderSettings()
    configure_logging(settings.log_level)
    if not settings.collection_url:
        raise SystemExit("BATCHSYNC_COLLECTION_URL is not set")

    async with create_batchsync_http_client(
        timeout=httpx.Timeout(settings.request_timeout),
        auth=httpx.BasicAuth(user, password),
    ) as client:
        session = BatchUploadSession.from_settings(
            HttpxTransport(client, settings.collection_url),
            settings,
            last_modified=last_modified,
            payload_outcome_callback=on_payload_outcome,
        )
        outcome = await session.run(load_records(path))

    print(outcome.model_dump_json(indent=2))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("records", type=Path)
    parser.add_argument("--user", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--last-modified", type=float, default=None)
    args = parser.parse_args()
    anyio.run(main, args.records, args.user, args.password, args.last_modified)
