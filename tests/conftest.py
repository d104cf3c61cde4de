import pytest

from log_viewer.config import Config
from log_viewer.models import FilterCatalog

from fakes import CATALOG_PAYLOAD


@pytest.fixture
def catalog() -> FilterCatalog:
    return FilterCatalog.from_dict(CATALOG_PAYLOAD)


@pytest.fixture
def config() -> Config:
    return Config(
        api_base_url="http://logs.test",
        ws_url="ws://logs.test/ws/log_entries/",
        idle_grace_secs=0.05,
    )
