import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def alerting_bed():
    from alerting.domain import alerting

    bed = DomainFixture(alerting)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(alerting_bed):
    with alerting_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()
