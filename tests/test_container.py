"""Tests for container wiring."""

import asyncio

import pytest

from resource_paywall import containers
from resource_paywall.adapters.memory_payment_repository import InMemoryPaymentStore
from resource_paywall.adapters.supabase_payment_repository import (
    SupabasePaymentSessionRepository,
)
from resource_paywall.config import parse_storage_backend


@pytest.fixture(autouse=True)
def fake_supabase(monkeypatch) -> None:
    monkeypatch.setattr(containers, "create_client", lambda url, key: object())


def test_build_container_with_memory_store(settings) -> None:
    container = containers.build_container(settings)

    repository = container.payment_service.session_repository
    assert isinstance(repository, InMemoryPaymentStore)
    assert container.payment_service.entitlement_repository is repository
    assert container.payment_service.session_ttl.total_seconds() == 900
    assert container.payment_service.free_unlock_enabled is True
    assert container.expiry_sweeper.enabled is False
    asyncio.run(container.close_resources())


def test_build_container_with_supabase_store(settings) -> None:
    supabase_settings = settings.model_copy(update={"storage_backend": "supabase"})

    container = containers.build_container(supabase_settings)

    assert isinstance(
        container.payment_service.session_repository,
        SupabasePaymentSessionRepository,
    )


def test_parse_storage_backend() -> None:
    assert parse_storage_backend(" Memory ") == "memory"
    assert parse_storage_backend("") == "supabase"
    with pytest.raises(ValueError):
        parse_storage_backend("redis")
