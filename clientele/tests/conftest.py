"""Pytest fixtures for Clientele tests."""

import pytest
from django.core.cache import cache

from clientele.models import Courier, Customer, CustomerAddress
from clientele.protocols.ledger import InvoicePage, LedgerContact, LedgerInvoice
from clientele.tests.celery_app import app as celery_app  # noqa: F401


class FakeLedger:
    """In-memory LedgerBackend double."""

    def __init__(self):
        self.connected = True
        self.contacts: list[LedgerContact] = []
        self.invoices: dict[str, list[LedgerInvoice]] = {}
        self.created = []
        self.updated = []
        self.invoice_calls = 0
        self.fail_with: Exception | None = None

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def add_contact(self, contact_id: str, name: str, email: str = "") -> LedgerContact:
        contact = LedgerContact(contact_id=contact_id, contact_name=name, email=email)
        self.contacts.append(contact)
        return contact

    def is_connected(self) -> bool:
        return self.connected

    def search_contacts(self, query):
        self._check()
        q = query.lower()
        return [
            c for c in self.contacts if q in c.email.lower() or q in c.contact_name.lower()
        ]

    def get_contact(self, contact_id):
        self._check()
        return next((c for c in self.contacts if c.contact_id == contact_id), None)

    def create_contact(self, payload):
        self._check()
        contact = self.add_contact(
            f"ZC-{len(self.contacts) + 1:04d}", payload.contact_name, payload.email
        )
        self.created.append(payload)
        return contact

    def update_contact(self, contact_id, payload):
        self._check()
        self.updated.append((contact_id, payload))

    def list_invoices(self, contact_id, filter="recent", page=1):
        self._check()
        self.invoice_calls += 1
        items = self.invoices.get(contact_id, [])
        return InvoicePage(items=items, has_more=False, total=len(items))


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def ledger(monkeypatch):
    """Replace the configured ledger backend with a FakeLedger."""
    fake = FakeLedger()
    monkeypatch.setattr("clientele.services.sync.get_ledger", lambda: fake)
    return fake


@pytest.fixture
def courier(db):
    return Courier.objects.create(code="lbc", name="LBC Express")


@pytest.fixture
def address_data():
    """Factory for valid address input."""

    def make(**overrides):
        data = {
            "label": "Home",
            "recipient_first_name": "Juan",
            "recipient_last_name": "Dela Cruz",
            "street_address": "123 Rizal St",
            "barangay": "San Antonio",
            "city": "Makati",
            "province": "Metro Manila",
            "region": "NCR",
            "postal_code": "1203",
        }
        data.update(overrides)
        return data

    return make


@pytest.fixture
def customer(db):
    """Pickup customer without addresses."""
    return Customer.objects.create(
        code="CUS-0001",
        first_name="Juan",
        last_name="Dela Cruz",
        email="juan@example.com",
        phone="09171234567",
        delivery_method="pickup",
    )


@pytest.fixture
def delivery_customer(db, courier, address_data):
    """Delivery customer with one (default) address."""
    cust = Customer.objects.create(
        code="CUS-0002",
        first_name="Maria",
        last_name="Santos",
        email="maria@example.com",
        phone="09181234567",
        delivery_method="delivered",
        courier=courier,
        profile_street_address="45 Mabini Ave",
        profile_barangay="Poblacion",
        profile_city="Quezon City",
        profile_province="Metro Manila",
        profile_postal_code="1100",
    )
    data = address_data()
    CustomerAddress.objects.create(customer=cust, is_default=True, **data)
    return cust


@pytest.fixture
def customer_user(db, django_user_model, delivery_customer):
    """Auth user linked to delivery_customer."""
    user = django_user_model.objects.create_user(username="maria", password="pw-maria")
    delivery_customer.user = user
    delivery_customer.save()
    return user


@pytest.fixture
def staff_user(db, django_user_model):
    return django_user_model.objects.create_user(
        username="admin", password="pw-admin", is_staff=True
    )
