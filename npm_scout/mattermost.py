"""Post discovery results to a Mattermost incoming webhook."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import httpx

from . import config
from .errors import WebhookError
from .models import PackageInfo

logger = logging.getLogger(__name__)

USERNAME = "NPM Package Tracker"
# Mattermost accepts up to 16383 characters per post
SINGLE_POST_LIMIT = 16000
CHUNK_LIMIT = 15000
TABLE_HEADER = "| Name | Description | Published | Versions |\n|:-----|:------------|:----------|:---------|"


def to_markdown_table(packages: Sequence[PackageInfo]) -> str:
    if not packages:
        return "No new packages found."

    rows = [TABLE_HEADER]
    for pkg in packages:
        desc = (pkg.description or "-")[:80]
        rows.append(
            f"| [{pkg.name}]({pkg.npm_url}) | {desc} | "
            f"{pkg.first_published_at.date().isoformat()} | {pkg.version_count} |"
        )
    return "\n".join(rows)


def build_messages(packages: Sequence[PackageInfo], today: date) -> List[str]:
    """Split the title and table into posts that fit the webhook size limit.

    Every table chunk after a split starts with the table header again.
    """
    title = f"## New NPM Packages ({today.isoformat()})"
    table = to_markdown_table(packages)
    text = f"{title}\n\n{table}"
    if len(text) <= SINGLE_POST_LIMIT:
        return [text]

    messages = [title]
    header = TABLE_HEADER + "\n"
    chunk = header
    for line in table.split("\n")[2:]:
        if len(chunk + line + "\n") > CHUNK_LIMIT:
            messages.append(chunk)
            chunk = header + line + "\n"
        else:
            chunk += line + "\n"
    if len(chunk) > len(header):
        messages.append(chunk)
    return messages


def post_message(client: httpx.Client, webhook_url: str, payload: Dict[str, Any]) -> None:
    response = client.post(webhook_url, json=payload)
    if not response.is_success:
        raise WebhookError(
            f"Mattermost webhook failed: {response.status_code} {response.reason_phrase} - {response.text}"
        )


def post_packages(
    packages: Sequence[PackageInfo],
    webhook_url: str,
    today: Optional[date] = None,
    client: Optional[httpx.Client] = None,
) -> int:
    """Post packages as a markdown table and return the number of posts made.

    Raises:
        WebhookError: If the webhook answers with an error status.
    """
    messages = build_messages(packages, today or date.today())
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=config.HTTP_TIMEOUT, follow_redirects=True)
    try:
        for text in messages:
            try:
                post_message(client, webhook_url, {"text": text, "username": USERNAME})
            except httpx.RequestError as exc:
                raise WebhookError(f"Mattermost webhook failed: {exc}") from exc
    finally:
        if owns_client:
            client.close()

    logger.info("Posted %d package(s) to Mattermost in %d message(s)", len(packages), len(messages))
    return len(messages)
