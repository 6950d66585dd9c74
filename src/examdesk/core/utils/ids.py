"""Id generation. Every stored entity gets a uuid4 string id."""

from __future__ import annotations

import uuid
from typing import Callable

IdFactory = Callable[[], str]


def new_id() -> str:
    return str(uuid.uuid4())
