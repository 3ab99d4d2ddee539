"""Hands captive-portal and login access records to the task queue."""

from typing import Any, Optional
import logging

from ..domain import ComplianceRecord, now
from ..tasks import encode_record, write_compliance_record

logger = logging.getLogger(__name__)


class ComplianceWriter(object):
    """
    Submits compliance records for writing by a Celery worker.

    Records wait in the broker until a worker acknowledges the write, so
    they survive a restart of the web process.
    """

    def __init__(self, task: Optional[Any] = None) -> None:
        self.task = task or write_compliance_record

    def submit(self, record: ComplianceRecord) -> str:
        """
        Queue a record for writing, stamping its login time if missing.

        Parameters
        ----------
        record : :class:`.ComplianceRecord`

        Returns
        -------
        str
            The ID of the write task.

        Raises
        ------
        Exception
            Whatever the broker client raises if the record cannot be
            published; callers decide whether that matters.

        """
        if record.login_time is None:
            record = record._replace(login_time=now())
        result = self.task.delay(encode_record(record))
        logger.debug('Queued %s compliance record for user %s (task %s)',
                     record.event, record.user_id, result.task_id)
        task_id: str = result.task_id
        return task_id
