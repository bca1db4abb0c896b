"""rules.tracker: Thumbnail change detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from connectors.base import BaseConnector
from core.errors import FetchError
from core.processing import hash_content

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Changed:
    new_hash: str
    raw_bytes: bytes


@dataclass(frozen=True)
class Unchanged:
    new_hash: str
    raw_bytes: bytes


@dataclass(frozen=True)
class CheckError:
    reason: str

    @property
    def new_hash(self) -> str:
        return ""

    @property
    def raw_bytes(self) -> Optional[bytes]:
        return None


CheckOutcome = Union[Changed, Unchanged, CheckError]


def evaluate_change(
    resource_url: str,
    previous_hash: str | None,
    connector: BaseConnector,
) -> CheckOutcome:
    """Fetch ``resource_url`` and compare its digest with ``previous_hash``.

    Never raises: every failure comes back as a ``CheckError``. An empty or
    missing previous hash always reports ``Changed``.
    """
    try:
        content = connector.fetch(resource_url)
    except FetchError as error:
        return CheckError(reason=f"Error checking thumbnail: {error.reason}")
    except Exception as error:
        logger.warning("Unexpected failure fetching %s: %s", resource_url, error)
        return CheckError(reason=f"Error checking thumbnail: {error}")

    current_hash = hash_content(content)
    if not previous_hash or previous_hash != current_hash:
        return Changed(new_hash=current_hash, raw_bytes=content)
    return Unchanged(new_hash=current_hash, raw_bytes=content)
