import pytest
from protean.integrations.pytest import DomainFixture
from storefront.carrier import set_carrier
from storefront.carrier.fake_adapter import FakeCarrier
from storefront.config import Settings, set_settings
from storefront.gateway import set_gateway
from storefront.gateway.fake_adapter import FakePaymentGateway
from storefront.inventory.products import stock_product
from storefront.notification import set_notifier
from storefront.notification.adapters import FakeNotifier
from storefront.order.orchestrator import CartLine, OrderOrchestrator, OrderRequest
from storefront.payment.reconciler import sign_payment
from storefront.shared.actor import Actor
from storefront.store import set_store
from storefront.store.memory_adapter import MemoryDocumentStore
from storefront.store.port import StoreError

SECRET = "test-secret"


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Adapters, registered so command handlers and routes see the same instances
# ---------------------------------------------------------------------------
@pytest.fixture
def settings():
    settings = Settings(env="test", razorpay_key_secret=SECRET)
    set_settings(settings)
    return settings


@pytest.fixture
def store(settings):
    store = MemoryDocumentStore()
    set_store(store)
    return store


@pytest.fixture
def gateway(settings):
    gateway = FakePaymentGateway()
    set_gateway(gateway)
    return gateway


@pytest.fixture
def carrier(settings):
    carrier = FakeCarrier(
        free_shipping_threshold=settings.free_shipping_threshold,
        flat_charge=settings.flat_shipping_charge,
    )
    set_carrier(carrier)
    return carrier


@pytest.fixture
def notifier():
    notifier = FakeNotifier()
    set_notifier(notifier)
    return notifier


@pytest.fixture
def orchestrator(store, gateway, carrier, settings):
    return OrderOrchestrator(store, gateway, carrier, settings)


# ---------------------------------------------------------------------------
# Actors and data
# ---------------------------------------------------------------------------
@pytest.fixture
def customer():
    return Actor(user_id="cust-001")


@pytest.fixture
def other_customer():
    return Actor(user_id="cust-002")


@pytest.fixture
def staff():
    return Actor(user_id="staff-001", role="staff")


@pytest.fixture
def address():
    return {
        "name": "Asha Rao",
        "line1": "12 Marine Drive",
        "city": "Mumbai",
        "state": "Maharashtra",
        "postal_code": "400020",
        "phone": "9876543210",
    }


@pytest.fixture
def stock(store):
    """Create or restock a product: ``stock("p1", price=50000, available=10)``."""

    def _stock(product_id, price=50000, available=10, category="", is_active=True):
        return stock_product(
            store,
            product_id,
            name=f"Product {product_id}",
            price=price,
            available=available,
            sku=f"SKU-{product_id}",
            category=category,
            is_active=is_active,
        )

    return _stock


@pytest.fixture
def catalogue(stock):
    """Two products: ``p1`` at 500.00 with 10 units, ``p2`` at 200.00 with 5 units."""
    stock("p1", price=50000, available=10, category="apparel")
    stock("p2", price=20000, available=5, category="books")


@pytest.fixture
def place(orchestrator, address, customer):
    """Place an order: ``place([("p1", 2)], coupon_code="SAVE")``."""

    def _place(lines=(("p1", 2),), user_id=None, coupon_code=None, gift_wrap=False):
        return orchestrator.create_order(
            OrderRequest(
                user_id=user_id or customer.user_id,
                lines=tuple(CartLine(product_id, quantity) for product_id, quantity in lines),
                shipping_address=address,
                coupon_code=coupon_code,
                gift_wrap=gift_wrap,
            )
        )

    return _place


@pytest.fixture
def pay(orchestrator, gateway):
    """Capture a payment for ``order`` at the gateway and reconcile it."""

    def _pay(order, amount=None, signature=None):
        intent_id = order.payment.intent_id
        payment_id = gateway.capture(intent_id, amount=amount)
        return orchestrator.confirm_payment(
            str(order.id),
            intent_id,
            payment_id,
            signature or sign_payment(SECRET, intent_id, payment_id),
        )

    return _pay


@pytest.fixture
def define_coupon(store):
    """Store a coupon document: ``define_coupon("SAVE200", "fixed", 20000)``."""
    from storefront.coupon.coupon import Coupon, coupon_to_document

    def _define(code, discount_type, value, **terms):
        coupon = Coupon.define(code, discount_type, value, **terms)
        store.set("coupons", coupon.code, coupon_to_document(coupon))
        return coupon

    return _define


@pytest.fixture
def fail_writes(store, monkeypatch):
    """Make store updates raise StoreError: ``fail_writes("coupons")``.

    ``when(doc_id, changes)`` narrows which updates fail; ``times`` is how
    many matching updates fail before writes go through again.
    """

    def _fail(collection, times=1, when=None):
        original = store.update
        remaining = [times]

        def update(target, doc_id, changes, expect=None):
            if target == collection and remaining[0] > 0 and (when is None or when(doc_id, changes)):
                remaining[0] -= 1
                raise StoreError(f"{target}/{doc_id} is unavailable")
            return original(target, doc_id, changes, expect=expect)

        monkeypatch.setattr(store, "update", update)

    return _fail
