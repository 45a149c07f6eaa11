"""
Tiered pricing engine.

Pure functions: no database or request access. Cart mutation, cart view,
transfer lookup and order confirmation all call resolve_price so the same
inputs always yield the same unit price and discount.

RULES:
- basis = size override when given, else the product's base price
- tiers are sorted by min_qty descending (ties: lowest price first)
- the first tier with min_qty <= quantity is the only candidate
- the candidate applies only if strictly cheaper than the basis
- discount_cents = (basis - price) * quantity, never negative
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class PriceTier:
    min_qty: int
    price_cents: int
    label: str | None = None

    @property
    def display_label(self) -> str:
        return self.label or f"{self.min_qty}+ pcs"


@dataclass(frozen=True)
class PriceResolution:
    price_cents: int
    basis_cents: int
    is_wholesale: bool
    tier_label: str | None
    discount_cents: int

    def to_dict(self) -> dict:
        return {
            "price_cents": self.price_cents,
            "retail_price_cents": self.basis_cents,
            "is_wholesale": self.is_wholesale,
            "tier_label": self.tier_label,
            "discount_cents": self.discount_cents,
        }


def parse_tiers(raw: Iterable[dict] | None) -> list[PriceTier]:
    """
    Build PriceTier values from stored JSON.

    Accepts both snake_case and the camelCase keys emitted by older catalog
    clients ("price" is cents, same as "price_cents", matching
    Product.size_price_cents). Entries without a usable threshold or price
    are skipped.
    """
    tiers = []
    for entry in raw or []:
        if not isinstance(entry, dict):
            continue
        min_qty = entry.get("min_qty", entry.get("minQty"))
        price = entry.get("price_cents", entry.get("price"))
        if min_qty is None or price is None:
            continue
        tiers.append(PriceTier(min_qty=int(min_qty), price_cents=int(price), label=entry.get("label") or None))
    return tiers


def sort_tiers(tiers: Iterable[PriceTier]) -> list[PriceTier]:
    # Highest threshold first; equal thresholds resolve to the cheaper tier.
    return sorted(tiers, key=lambda t: (-t.min_qty, t.price_cents))


def resolve_price(
    base_price_cents: int,
    tiers: Iterable[PriceTier],
    quantity: int,
    size_price_cents: int | None = None,
) -> PriceResolution:
    """Effective unit price and discount for quantity units of one product line."""
    basis = size_price_cents if size_price_cents is not None else base_price_cents
    price = basis
    is_wholesale = False
    tier_label = None

    for tier in sort_tiers(tiers):
        if tier.min_qty <= quantity:
            if tier.price_cents < basis:
                price = tier.price_cents
                is_wholesale = True
                tier_label = tier.display_label
            break

    return PriceResolution(
        price_cents=price,
        basis_cents=basis,
        is_wholesale=is_wholesale,
        tier_label=tier_label,
        discount_cents=(basis - price) * quantity,
    )


def resolve_product_price(product, quantity: int, size: str | None = None) -> PriceResolution:
    """resolve_price using a Product's live base price, tiers and size override."""
    return resolve_price(
        int(product.price_cents or 0),
        parse_tiers(product.wholesale_tiers),
        quantity,
        product.size_price_cents(size),
    )
