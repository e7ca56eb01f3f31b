import pytest

from tests.parcels.fakes import FakeScraper, found_result


@pytest.fixture
def fake_scraper():
    return FakeScraper(result=found_result())
