import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    # `cli.main` reconfigures structlog globally; keep tests independent of each other.
    yield
    structlog.reset_defaults()
