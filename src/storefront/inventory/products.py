"""Product stock records used by the ledger.

The catalogue itself is managed elsewhere; this module only writes the
fields the ledger and pricing read: price, active flag and the three
stock counters.
"""

from protean.exceptions import ValidationError

from storefront.inventory.ledger import PRODUCTS
from storefront.store.port import Increment


def stock_product(store, product_id, name, price, available, sku="", category="", is_active=True) -> dict:
    """Create a product stock record, or restock and reprice an existing one.

    Restocking adds to ``available`` atomically and leaves the reserved and
    sold counters alone.
    """
    if price is None or price < 0:
        raise ValidationError({"price": ["Price must be zero or more"]})
    if available is None or available < 0:
        raise ValidationError({"available": ["Stock to add must be zero or more"]})

    details = {"name": name, "price": price, "sku": sku, "category": category, "is_active": is_active}
    if store.get(PRODUCTS, product_id) is None:
        document = {"id": product_id, **details, "available": available, "reserved": 0, "units_sold": 0}
        store.set(PRODUCTS, product_id, document)
        return document
    return store.update(PRODUCTS, product_id, {**details, "available": Increment(available)})
