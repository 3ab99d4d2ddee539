import pytest

from .context import build_services
from .factory import create_app
from .tasks import celery_app
from .tests.util import FakeCache, FakeClock, FakeProvider, RecordingMail, \
    temporary_store

TEST_CONFIG = {
    'JWT_SECRET': 'testsecret',
    'RESERVED_USERNAMES': 'admin,support,markmorph',
    'LOG_LEVEL': 'DEBUG',
    'LOG_JSON': '0',
    'CREATE_DB': '0',
}


@pytest.fixture()
def store():
    with temporary_store() as store:
        yield store


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def cache(clock):
    return FakeCache(clock)


@pytest.fixture()
def mail():
    return RecordingMail()


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture(autouse=True, scope='session')
def eager_tasks():
    """Run queued tasks in-process, raising their errors."""
    celery_app.conf.update(task_always_eager=True, task_eager_propagates=True)


@pytest.fixture()
def services(store, cache, provider, mail):
    return build_services(TEST_CONFIG, store=store, cache=cache,
                          provider=provider, mailer=mail)


@pytest.fixture()
def app(services):
    return create_app(TEST_CONFIG, services)


@pytest.fixture()
def client(app):
    return app.test_client()
