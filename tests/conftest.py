"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from resource_paywall.adapters.memory_payment_repository import InMemoryPaymentStore
from resource_paywall.config import Settings
from resource_paywall.containers import AppContainer
from resource_paywall.domain.catalog import ResourceInfo, UserInfo, UserRole
from resource_paywall.services.access import (
    AccessService,
    ResourceCatalog,
    UserDirectory,
)
from resource_paywall.services.payments import PaymentSessionService
from resource_paywall.services.processing import SimulatedPaymentProcessor
from resource_paywall.services.sweeper import ExpirySweeper

HOME_COLLEGE = UUID("00000000-0000-0000-0000-00000000000a")
OTHER_COLLEGE = UUID("00000000-0000-0000-0000-00000000000b")


@dataclass
class FakeClock:
    """Controllable clock for expiry tests."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@dataclass
class InMemoryResourceCatalog(ResourceCatalog):
    """In-memory resource catalog for tests."""

    resources: dict[UUID, ResourceInfo] = field(default_factory=dict)
    unlocked: set[tuple[UUID, UUID]] = field(default_factory=set)
    unlock_calls: list[tuple[UUID, UUID]] = field(default_factory=list)
    fail_mark_unlocked: bool = False

    def add(
        self,
        college_id: UUID = OTHER_COLLEGE,
        is_locked: bool = True,
        price: str = "10.00",
    ) -> ResourceInfo:
        resource = ResourceInfo(
            id=uuid4(),
            college_id=college_id,
            is_locked=is_locked,
            price=Decimal(price),
            currency="USD",
        )
        self.resources[resource.id] = resource
        return resource

    def get_resource(self, resource_id: UUID) -> ResourceInfo | None:
        return self.resources.get(resource_id)

    def is_entitled(self, user_id: UUID, resource_id: UUID) -> bool:
        return (user_id, resource_id) in self.unlocked

    def mark_unlocked(self, user_id: UUID, resource_id: UUID) -> None:
        self.unlock_calls.append((user_id, resource_id))
        if self.fail_mark_unlocked:
            raise RuntimeError("catalog unavailable")
        self.unlocked.add((user_id, resource_id))


@dataclass
class InMemoryUserDirectory(UserDirectory):
    """In-memory user directory for tests."""

    users: dict[UUID, UserInfo] = field(default_factory=dict)

    def add(
        self, role: UserRole = UserRole.COLLEGE_USER, college_id: UUID | None = None
    ) -> UserInfo:
        user = UserInfo(
            id=uuid4(),
            role=role,
            college_id=HOME_COLLEGE if college_id is None else college_id,
        )
        self.users[user.id] = user
        return user

    def get_user(self, user_id: UUID) -> UserInfo | None:
        return self.users.get(user_id)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        storage_backend="memory",
        free_unlock_enabled=True,
        expiry_sweep_interval_seconds=0,
        simulated_processing_delay_seconds=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryPaymentStore:
    return InMemoryPaymentStore()


@pytest.fixture
def catalog() -> InMemoryResourceCatalog:
    return InMemoryResourceCatalog()


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def payment_service(
    store: InMemoryPaymentStore,
    catalog: InMemoryResourceCatalog,
    directory: InMemoryUserDirectory,
    clock: FakeClock,
) -> PaymentSessionService:
    return PaymentSessionService(
        session_repository=store,
        entitlement_repository=store,
        resource_catalog=catalog,
        user_directory=directory,
        session_ttl=timedelta(minutes=15),
        free_unlock_enabled=True,
        clock=clock,
    )


@pytest.fixture
def access_service(
    catalog: InMemoryResourceCatalog, directory: InMemoryUserDirectory
) -> AccessService:
    return AccessService(resource_catalog=catalog, user_directory=directory)


@pytest.fixture
def container(
    settings: Settings,
    access_service: AccessService,
    payment_service: PaymentSessionService,
) -> AppContainer:
    payment_processor = SimulatedPaymentProcessor(
        payment_service=payment_service,
        delay_seconds=settings.simulated_processing_delay_seconds,
        outcome=settings.simulated_payment_outcome,
    )
    expiry_sweeper = ExpirySweeper(
        payment_service=payment_service,
        interval_seconds=settings.expiry_sweep_interval_seconds,
    )

    async def close_resources() -> None:
        await expiry_sweeper.stop()

    return AppContainer(
        settings=settings,
        access_service=access_service,
        payment_service=payment_service,
        payment_processor=payment_processor,
        expiry_sweeper=expiry_sweeper,
        close_resources=close_resources,
    )
