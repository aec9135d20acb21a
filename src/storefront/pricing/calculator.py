"""Order pricing.

``compute_pricing`` is a pure function from priced lines, a resolved coupon
discount and the order options to a ``PriceBreakdown``. All amounts are
integer minor units.

    tax         = round(tax_rate * (subtotal - discount + gift_wrap_charge))
    grand_total = subtotal - discount + gift_wrap_charge + tax + shipping_charge

``split_tax`` breaks ``tax`` into its GST components for the invoice.
"""

from dataclasses import dataclass
from decimal import Decimal

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Integer, String

from storefront.domain import storefront
from storefront.shared.money import round_half_up

DEFAULT_TAX_RATE = Decimal("0.18")
DEFAULT_GIFT_WRAP_CHARGE = 5000


@storefront.value_object(part_of="Order")
class PriceBreakdown:
    """Financial summary of an order, frozen at checkout.

    Later catalogue price changes never touch an existing breakdown.
    """

    subtotal = Integer(default=0, min_value=0)
    discount = Integer(default=0, min_value=0)
    tax = Integer(default=0, min_value=0)
    shipping_charge = Integer(default=0, min_value=0)
    gift_wrap_charge = Integer(default=0, min_value=0)
    grand_total = Integer(default=0, min_value=0)
    currency = String(max_length=3, default="INR")

    @invariant.post
    def grand_total_matches_components(self):
        expected = (
            (self.subtotal or 0)
            - (self.discount or 0)
            + (self.tax or 0)
            + (self.shipping_charge or 0)
            + (self.gift_wrap_charge or 0)
        )
        if self.grand_total != expected:
            raise ValidationError({"grand_total": [f"Grand total {self.grand_total} does not add up to {expected}"]})


@storefront.value_object(part_of="Order")
class TaxSplit:
    """GST components of an order's ``tax``.

    Intrastate supplies carry the tax as equal CGST and SGST halves;
    interstate supplies carry all of it as IGST.
    """

    cgst = Integer(default=0, min_value=0)
    sgst = Integer(default=0, min_value=0)
    igst = Integer(default=0, min_value=0)

    @property
    def total(self) -> int:
        return (self.cgst or 0) + (self.sgst or 0) + (self.igst or 0)


def split_tax(tax: int, shipping_state: str | None, seller_state: str | None) -> TaxSplit:
    """Split ``tax`` by place of supply. Without a seller state every sale is interstate."""
    intrastate = bool(seller_state) and (shipping_state or "").strip().casefold() == seller_state.strip().casefold()
    if not intrastate:
        return TaxSplit(igst=tax)
    cgst = round_half_up(Decimal(tax) / 2)
    # SGST takes the remainder so the halves always add back up to ``tax``
    return TaxSplit(cgst=cgst, sgst=tax - cgst)


@dataclass(frozen=True)
class PricedLine:
    """A cart line with the unit price captured from the product at order time."""

    product_id: str
    unit_price: int
    quantity: int
    name: str = ""
    sku: str = ""
    category: str = ""

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


def compute_subtotal(items) -> int:
    return sum(item.unit_price * item.quantity for item in items)


def compute_pricing(
    items,
    discount: int = 0,
    gift_wrap: bool = False,
    shipping_charge: int = 0,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
    gift_wrap_charge: int = DEFAULT_GIFT_WRAP_CHARGE,
    currency: str = "INR",
) -> PriceBreakdown:
    """Price a list of lines. Anything with ``unit_price`` and ``quantity`` works."""
    for item in items:
        if item.unit_price < 0 or item.quantity < 1:
            raise ValidationError({"items": ["Unit prices must be non-negative and quantities at least 1"]})
    if discount < 0:
        raise ValidationError({"discount": ["Discount cannot be negative"]})
    if shipping_charge < 0:
        raise ValidationError({"shipping_charge": ["Shipping charge cannot be negative"]})

    subtotal = compute_subtotal(items)
    if discount > subtotal:
        raise ValidationError({"discount": [f"Discount {discount} exceeds subtotal {subtotal}"]})

    wrap = gift_wrap_charge if gift_wrap else 0
    tax = round_half_up(Decimal(str(tax_rate)) * (subtotal - discount + wrap))
    return PriceBreakdown(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        shipping_charge=shipping_charge,
        gift_wrap_charge=wrap,
        grand_total=subtotal - discount + wrap + tax + shipping_charge,
        currency=currency,
    )
