from __future__ import annotations

from typing import Callable

import pytest

from cragconditions.core.abstractions import Location, Observation
from fakes import FakeClock, make_observation


@pytest.fixture()
def location() -> Location:
    return Location(id="index", latitude=47.8207, longitude=-121.5551, name="Index")


@pytest.fixture()
def observation_factory() -> Callable[..., Observation]:
    return make_observation


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
