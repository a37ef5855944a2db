"""Automatic removal of reported letters."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from .errors import StorageUnavailable
from .models import Report
from .store import MessageStore

__all__ = ["REPORT_THRESHOLD", "should_purge", "moderate"]

logger = logging.getLogger(__name__)

# A letter is purged once it has strictly more reports than this.
REPORT_THRESHOLD = 3


def should_purge(
    target_uuid: str,
    reporter_uuid: str | None,
    reports: Iterable[Report],
    admin_uuid: str | None,
) -> bool:
    """Return ``True`` if the letter ``target_uuid`` must be removed.

    ``reports`` is every report on record, including the one just filed. A
    report from ``admin_uuid`` removes the letter regardless of the count.
    """
    if admin_uuid is not None and reporter_uuid == admin_uuid:
        return True
    count = sum(1 for report in reports if report.letter_uuid == target_uuid)
    return count > REPORT_THRESHOLD


async def moderate(store: MessageStore, report: Report, admin_uuid: str | None) -> bool:
    """Apply the moderation rule after ``report`` has been stored.

    Storage failures and unreadable stored reports are logged rather than
    raised; by the time this runs the report has already been stored.

    Returns:
        bool: ``True`` if the rule required the reported letter to be purged.
    """
    try:
        reports = await store.list_reports()
        if not should_purge(report.letter_uuid, report.reporter_uuid, reports, admin_uuid):
            return False
        removed = await store.delete_message(report.letter_uuid)
    except (StorageUnavailable, ValidationError) as e:
        logger.error(f"Moderation of letter {report.letter_uuid} failed: {e}")
        return False

    if removed:
        logger.info("Purged letter %s", report.letter_uuid)
    else:
        logger.info("Letter %s already gone, nothing to purge", report.letter_uuid)
    return True
