"""
Celery configuration module.

See `the celery docs
<http://docs.celeryproject.org/en/latest/userguide/configuration.html>`_.
"""

import os

REDIS_URL = os.environ.get('REDIS_URL')
REDIS_ENDPOINT = '%s:%s' % (os.environ.get('REDIS_HOST', 'localhost'),
                            os.environ.get('REDIS_PORT', '6379'))

broker_url = os.environ.get('CELERY_BROKER_URL') \
    or REDIS_URL or 'redis://%s/0' % REDIS_ENDPOINT
broker_connection_timeout = float(os.environ.get('REDIS_TIMEOUT', '2.0'))

task_serializer = 'json'
accept_content = ['json']
task_ignore_result = True
task_publish_retry = False
worker_prefetch_multiplier = 1
task_acks_late = True

task_always_eager = os.environ.get('CELERY_ALWAYS_EAGER', '0') == '1'
