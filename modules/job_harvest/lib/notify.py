from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from . import logging_bridge

LOG = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify_about_new_records(self, new_record_ids: Sequence[str]) -> None: ...


class ActivityLogNotifier:
    """
    Default notifier: records the new IDs as a structured activity entry.
    Delivery (email, push) lives outside this package.
    """

    max_ids = 100

    async def notify_about_new_records(self, new_record_ids: Sequence[str]) -> None:
        ids = list(new_record_ids)
        if not ids:
            return
        LOG.info("Notifying about %d new job record(s)", len(ids))
        logging_bridge.activity(
            {
                "component": "job_harvest.notify",
                "op": "new_records",
                "count": len(ids),
                "ids": ids[: self.max_ids],
                "truncated": len(ids) > self.max_ids,
            }
        )
