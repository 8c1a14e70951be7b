import os

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from apps.destinations.services.images import ImageUrlResolver  # noqa: E402
from apps.destinations.services.repository import InMemoryDestinationRepository  # noqa: E402
from apps.destinations.tests.factories import sample_records  # noqa: E402


@pytest.fixture
def records():
    return sample_records()


@pytest.fixture
def repository(records):
    return InMemoryDestinationRepository(records)


@pytest.fixture
def images():
    return ImageUrlResolver("https://cdn.example.com/media")
