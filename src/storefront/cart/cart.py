"""Cart aggregate — the authoritative list of lines a shopper intends to buy.

The cart is never written through a repository. It lives in memory for the
shopper's session and is mirrored into a client-local slot by
``CartPersistence``. All mutation goes through ``add_line``, ``set_quantity``,
``remove_line`` and ``clear``; the aggregates ``total`` and ``item_count`` are
recomputed on every read.

None of the operations reject input. A product without a price contributes
nothing to the total; quantities are applied as given, and any line whose
quantity falls to zero or below leaves the cart.
"""

from collections.abc import Mapping
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, Text

from storefront.cart.events import CartCleared, CartLineAdded, CartLineRemoved, CartQuantitySet
from storefront.domain import storefront

SNAPSHOT_VERSION = 1


def _key(product_id) -> str:
    return str(product_id)


def _product_field(product, *names):
    """Read the first present attribute (or mapping key) from a product record."""
    if product is None:
        return None
    for name in names:
        if isinstance(product, Mapping):
            if name in product:
                return product[name]
        elif hasattr(product, name):
            return getattr(product, name)
    return None


def _minor_units(value):
    """Whole minor units, or None when the price is missing or not a number."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@storefront.entity(part_of="Cart")
class CartLine:
    product_id = Identifier()
    title = Text()
    unit_price_minor_units = Integer()
    quantity = Integer(required=True)
    image_ref = Text()

    @property
    def line_total(self) -> int:
        return (self.unit_price_minor_units or 0) * self.quantity

    def to_snapshot(self) -> dict:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "unit_price_minor_units": self.unit_price_minor_units,
            "quantity": self.quantity,
            "image_ref": self.image_ref,
        }


@storefront.aggregate
class Cart:
    lines = HasMany(CartLine)
    updated_at = DateTime()

    @invariant.post
    def one_line_per_product(self):
        keys = [_key(line.product_id) for line in self.lines]
        if len(keys) != len(set(keys)):
            raise ValidationError({"lines": ["A product can appear on only one cart line"]})

    @invariant.post
    def no_empty_lines(self):
        if any(line.quantity <= 0 for line in self.lines):
            raise ValidationError({"lines": ["Cart lines must have a positive quantity"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls):
        return cls(updated_at=datetime.now(UTC))

    @classmethod
    def from_snapshot(cls, snapshot: Mapping):
        """Rebuild a cart from the dict produced by ``snapshot()``.

        Lines that would break the cart's invariants (non-positive quantity,
        repeated product) are dropped rather than failing the rebuild.
        """
        cart = cls.create()
        seen = set()
        for data in snapshot.get("lines", []):
            quantity = int(data["quantity"])
            key = _key(data.get("product_id"))
            if quantity <= 0 or key in seen:
                continue
            seen.add(key)
            cart.add_lines(
                CartLine(
                    product_id=data.get("product_id"),
                    title=data.get("title"),
                    unit_price_minor_units=data.get("unit_price_minor_units"),
                    quantity=quantity,
                    image_ref=data.get("image_ref"),
                )
            )
        return cart

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def line_for(self, product_id):
        return next((line for line in self.lines if _key(line.product_id) == _key(product_id)), None)

    def total(self) -> int:
        """Sum of unit price times quantity, in minor units."""
        return sum(line.line_total for line in self.lines)

    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def is_empty(self) -> bool:
        return not self.lines

    def snapshot(self) -> dict:
        """Detached, JSON-ready copy of the cart in insertion order."""
        return {
            "version": SNAPSHOT_VERSION,
            "lines": [line.to_snapshot() for line in self.lines],
        }

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_line(self, product, quantity=1):
        """Add ``quantity`` of ``product``, accumulating onto an existing line."""
        product_id = _product_field(product, "id", "product_id", "productId")
        existing = self.line_for(product_id)

        if existing:
            new_quantity = existing.quantity + quantity
            if new_quantity <= 0:
                self._drop(existing)
                return
            existing.quantity = new_quantity
        else:
            new_quantity = quantity
            if new_quantity <= 0:
                return
            self.add_lines(
                CartLine(
                    product_id=product_id,
                    title=_product_field(product, "title", "name"),
                    unit_price_minor_units=_minor_units(
                        _product_field(product, "priceMinorUnits", "price_minor_units", "unit_price_minor_units", "price")
                    ),
                    quantity=quantity,
                    image_ref=_product_field(product, "image", "image_ref", "imageRef"),
                )
            )

        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartLineAdded(
                cart_id=str(self.id),
                product_id=_key(product_id),
                quantity_added=quantity,
                new_quantity=new_quantity,
            )
        )

    def set_quantity(self, product_id, quantity):
        """Replace a line's quantity; zero or less removes the line."""
        line = self.line_for(product_id)
        if line is None:
            return

        if quantity <= 0:
            self._drop(line)
            return

        previous_quantity = line.quantity
        line.quantity = quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartQuantitySet(
                cart_id=str(self.id),
                product_id=_key(product_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_line(self, product_id):
        line = self.line_for(product_id)
        if line is not None:
            self._drop(line)

    def clear(self):
        line_count = len(self.lines)
        for line in list(self.lines):
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartCleared(cart_id=str(self.id), line_count=line_count))

    def _drop(self, line):
        previous_quantity = line.quantity
        product_id = line.product_id
        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CartLineRemoved(
                cart_id=str(self.id),
                product_id=_key(product_id),
                previous_quantity=previous_quantity,
            )
        )
