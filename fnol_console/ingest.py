"""Intake submission: validate a parsed email and post it to the backend."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fnol_console.api_client import FNOLApiClient
from fnol_console.fetchers import DASHBOARD_STATS_QUERY, FNOLS_QUERY
from fnol_console.models import IngestPayload
from fnol_console.query_cache import QueryCache

logger = logging.getLogger(__name__)

# Queries whose results can change once a new case is ingested.
AFFECTED_QUERY_PREFIXES = ((FNOLS_QUERY,), (DASHBOARD_STATS_QUERY,))


class IngestValidationError(ValueError):
    """Raised before any request when the payload is unusable."""


def parse_attachments(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in (raw or "").split(",") if part.strip())


def build_ingest_payload(
    *,
    subject: str,
    body: str,
    sender: str,
    attachments: str | list[str] | tuple[str, ...] = (),
    received_at: datetime | None = None,
) -> IngestPayload:
    if not (sender or "").strip():
        raise IngestValidationError("A sender is required.")
    if not (subject or "").strip():
        raise IngestValidationError("A subject is required.")

    if isinstance(attachments, str):
        attachment_names = parse_attachments(attachments)
    else:
        attachment_names = tuple(name.strip() for name in attachments if name and name.strip())

    received = received_at or datetime.now(timezone.utc)
    if received.tzinfo is None:
        received = received.replace(tzinfo=timezone.utc)

    return IngestPayload(
        subject=subject.strip(),
        body=body or "",
        sender=sender.strip(),
        received_at=received.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        attachments=attachment_names,
    )


async def submit_ingest(
    client: FNOLApiClient,
    payload: IngestPayload,
    *,
    cache: QueryCache | None = None,
) -> dict[str, Any]:
    """Post ``payload`` and mark list and dashboard queries stale on success.

    The acknowledgement is returned as-is and never written into the cache.
    ``TransportError`` propagates to the caller.
    """
    acknowledgement = await client.submit_ingest(payload)
    logger.info("Submitted intake from %s (%d attachment(s))", payload.sender, len(payload.attachments))

    if cache is not None:
        for prefix in AFFECTED_QUERY_PREFIXES:
            cache.invalidate(prefix)
    return acknowledgement
