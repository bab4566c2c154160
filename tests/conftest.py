from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from diskspec.storage import default

here = Path(__file__).parent
root_path = here.parent


@pytest.fixture(autouse=True)
def _reset_default_manager() -> Iterator[None]:
    """Make sure no test leaks a process-wide default manager into the next."""
    yield
    default.default_holder.teardown()
