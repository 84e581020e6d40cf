"""Shared fixtures for the signaling tests."""

import pytest

from pairlink.signaling import ConnectionLifecycleManager, RoomRegistry, SignalingRelay


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def lifecycle(registry) -> ConnectionLifecycleManager:
    return ConnectionLifecycleManager(registry)


@pytest.fixture
def relay(registry, lifecycle) -> SignalingRelay:
    return SignalingRelay(registry, lifecycle)
