from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from fakes import FakePlatform, bare_platform, full_platform

from pypwa.config import LifecycleConfig
from pypwa.coordinator import LifecycleCoordinator


@pytest.fixture
def platform() -> FakePlatform:
    return full_platform()


@pytest.fixture
def config() -> LifecycleConfig:
    # Grace period off by default; tests that exercise it opt in.
    return LifecycleConfig(install_grace_period=None, modal_delay=0.01, floating_button_delay=0.02)


@pytest_asyncio.fixture
async def coordinator(platform: FakePlatform, config: LifecycleConfig) -> AsyncIterator[LifecycleCoordinator]:
    async with LifecycleCoordinator(platform, config) as coord:
        # Let background-worker registration finish.
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        yield coord


@pytest.fixture
def bare() -> FakePlatform:
    return bare_platform()
