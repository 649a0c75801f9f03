"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from resource_paywall.adapters.memory_payment_repository import InMemoryPaymentStore
from resource_paywall.adapters.supabase_entitlement_repository import (
    SupabaseEntitlementRepository,
)
from resource_paywall.adapters.supabase_payment_repository import (
    SupabasePaymentSessionRepository,
)
from resource_paywall.adapters.supabase_resource_catalog import (
    SupabaseResourceCatalog,
)
from resource_paywall.adapters.supabase_user_directory import SupabaseUserDirectory
from resource_paywall.config import Settings, parse_storage_backend
from resource_paywall.services.access import AccessService
from resource_paywall.services.payments import (
    EntitlementRepository,
    PaymentSessionRepository,
    PaymentSessionService,
)
from resource_paywall.services.processing import SimulatedPaymentProcessor
from resource_paywall.services.sweeper import ExpirySweeper


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    access_service: AccessService
    payment_service: PaymentSessionService
    payment_processor: SimulatedPaymentProcessor
    expiry_sweeper: ExpirySweeper
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    resource_catalog = SupabaseResourceCatalog(supabase_client)
    user_directory = SupabaseUserDirectory(supabase_client)

    session_repository: PaymentSessionRepository
    entitlement_repository: EntitlementRepository
    if parse_storage_backend(resolved_settings.storage_backend) == "memory":
        store = InMemoryPaymentStore()
        session_repository = store
        entitlement_repository = store
    else:
        session_repository = SupabasePaymentSessionRepository(supabase_client)
        entitlement_repository = SupabaseEntitlementRepository(supabase_client)

    access_service = AccessService(
        resource_catalog=resource_catalog,
        user_directory=user_directory,
    )
    payment_service = PaymentSessionService(
        session_repository=session_repository,
        entitlement_repository=entitlement_repository,
        resource_catalog=resource_catalog,
        user_directory=user_directory,
        session_ttl=timedelta(seconds=resolved_settings.payment_session_ttl_seconds),
        free_unlock_enabled=resolved_settings.free_unlock_enabled,
    )
    payment_processor = SimulatedPaymentProcessor(
        payment_service=payment_service,
        delay_seconds=resolved_settings.simulated_processing_delay_seconds,
        outcome=resolved_settings.simulated_payment_outcome,
    )
    expiry_sweeper = ExpirySweeper(
        payment_service=payment_service,
        interval_seconds=resolved_settings.expiry_sweep_interval_seconds,
    )

    async def close_resources() -> None:
        await expiry_sweeper.stop()

    return AppContainer(
        settings=resolved_settings,
        access_service=access_service,
        payment_service=payment_service,
        payment_processor=payment_processor,
        expiry_sweeper=expiry_sweeper,
        close_resources=close_resources,
    )
