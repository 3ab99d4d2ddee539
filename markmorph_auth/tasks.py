"""Asynchronous tasks."""

from typing import Any, Dict
import logging

from celery import Celery
from dateutil.parser import isoparse

from .domain import ComplianceRecord

logger = logging.getLogger(__name__)

celery_app = Celery('markmorph_auth')
celery_app.config_from_object('markmorph_auth.celeryconfig')


def encode_record(record: ComplianceRecord) -> Dict[str, Any]:
    """Render a compliance record as a JSON-safe task argument."""
    data = record._asdict()
    if record.login_time is not None:
        data['login_time'] = record.login_time.isoformat()
    return data


def decode_record(data: Dict[str, Any]) -> ComplianceRecord:
    """Rebuild a compliance record from :func:`encode_record` output."""
    login_time = data.get('login_time')
    return ComplianceRecord(**{
        **data,
        'login_time': isoparse(login_time) if login_time else None
    })


@celery_app.task(ignore_result=True)
def write_compliance_record(data: Dict[str, Any]) -> None:
    """
    Persist one compliance record.

    Runs in a worker that has pushed an application context (see
    ``worker.py``). Failed writes are logged by the worker and not retried.

    Parameters
    ----------
    data : dict
        A record encoded with :func:`encode_record`.

    """
    # Deferred: the application context module imports the services.
    from .context import current_services

    record = decode_record(data)
    current_services().store.add_compliance_log(record)
    logger.debug('Wrote %s compliance record for user %s', record.event,
                 record.user_id)
