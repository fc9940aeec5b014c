from __future__ import annotations

import pytest

from cryptopulse.tests.fakes import FakeCoinGecko, ManualClock


@pytest.fixture()
def fake_client() -> FakeCoinGecko:
    return FakeCoinGecko()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()
