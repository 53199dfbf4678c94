from datetime import datetime

import pytest

from database import MemStorage

NOW = datetime(2026, 10, 19, 10, 30)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def storage(now):
    """Fresh store per test with the clock pinned to NOW."""
    return MemStorage(clock=lambda: now, strict_references=False)


@pytest.fixture
def student_data():
    return {
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "asha@x.com",
        "phone": "9990001111",
    }
