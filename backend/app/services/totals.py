"""Line and document totals for quotations, invoices and customer POs.

All arithmetic is done on ``Decimal``. Per line:

    subtotal          = quantity * unit_price
    discount_amount   = subtotal * discount / 100
    discounted_amount = subtotal - discount_amount
    tax_amount        = discounted_amount * tax_rate / 100
    total_price       = discounted_amount + tax_amount

Each reported figure is rounded half-up to 2 places from the exact value.
Document totals add the rounded line totals; ``round_off`` records the
difference between that and the exact, unrounded figure.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
Q = Decimal("0.0001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Coerce user input to ``Decimal``; missing, blank, NaN or junk becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else ZERO
    if isinstance(value, int):
        return Decimal(value)
    text = str(value).strip()
    if not text:
        return ZERO
    try:
        number = Decimal(text)
    except InvalidOperation:
        return ZERO
    return number if number.is_finite() else ZERO


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _get(row: Any, *keys: str) -> Any:
    """Read the first present key from a dict (snake or camel case) or object."""
    for key in keys:
        if isinstance(row, Mapping):
            if key in row:
                return row[key]
        elif hasattr(row, key):
            return getattr(row, key)
    return None


# ─── Line totals ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LineTotals:
    subtotal: Decimal
    discount_amount: Decimal
    discounted_amount: Decimal
    tax_amount: Decimal
    total_price: Decimal
    # Unrounded line total, kept for the document round-off
    exact_total: Decimal = field(repr=False, compare=False, default=ZERO)

    def as_dict(self) -> dict[str, str]:
        return {
            "subtotal": str(self.subtotal),
            "discount_amount": str(self.discount_amount),
            "discounted_amount": str(self.discounted_amount),
            "tax_amount": str(self.tax_amount),
            "total_price": str(self.total_price),
        }


def compute_line(
    quantity: Any,
    unit_price: Any,
    discount: Any = 0,
    tax_rate: Any = 0,
) -> LineTotals:
    qty = to_decimal(quantity)
    price = to_decimal(unit_price)
    disc = to_decimal(discount)
    rate = to_decimal(tax_rate)

    subtotal = qty * price
    discount_amount = subtotal * disc / HUNDRED
    discounted = subtotal - discount_amount
    tax = discounted * rate / HUNDRED
    total = discounted + tax

    return LineTotals(
        subtotal=round2(subtotal),
        discount_amount=round2(discount_amount),
        discounted_amount=round2(discounted),
        tax_amount=round2(tax),
        total_price=round2(total),
        exact_total=total,
    )


def line_from_row(row: Any, *, tax_keys: tuple[str, ...] = ("tax_rate", "taxRate")) -> LineTotals:
    """Price one item given as a dict (snake or camel case) or an object."""
    return compute_line(
        _get(row, "quantity", "qty"),
        _get(row, "unit_price", "unitPrice"),
        _get(row, "discount"),
        _get(row, *tax_keys),
    )


# ─── Document totals ──────────────────────────────────────────────────────────


@dataclass
class DocumentTotals:
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_tax: Decimal = ZERO
    overall_discount: Decimal = ZERO
    overall_discount_amount: Decimal = ZERO
    battery_buyback_amount: Decimal = ZERO
    grand_total: Decimal = ZERO
    round_off: Decimal = ZERO
    items: list[LineTotals] = field(default_factory=list)
    service_charges: list[LineTotals] = field(default_factory=list)
    battery_buyback: LineTotals | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "subtotal": str(self.subtotal),
            "total_discount": str(self.total_discount),
            "total_tax": str(self.total_tax),
            "overall_discount": str(self.overall_discount),
            "overall_discount_amount": str(self.overall_discount_amount),
            "battery_buyback_amount": str(self.battery_buyback_amount),
            "grand_total": str(self.grand_total),
            "round_off": str(self.round_off),
            "items": [line.as_dict() for line in self.items],
            "service_charges": [line.as_dict() for line in self.service_charges],
            "battery_buyback": self.battery_buyback.as_dict() if self.battery_buyback else None,
        }


def calculate_totals(
    items: Iterable[Any],
    service_charges: Iterable[Any] = (),
    battery_buyback: Any | None = None,
    overall_discount: Any = 0,
) -> DocumentTotals:
    """Totals for a quotation-style document.

    ``battery_buyback`` is priced like a line with no GST and deducted from
    the grand total. ``overall_discount`` is a percentage of the items plus
    service charges, applied after line-level discounts and tax.
    """
    lines = [line_from_row(row) for row in items]
    services = [line_from_row(row) for row in service_charges]

    buyback: LineTotals | None = None
    if battery_buyback is not None:
        buyback = compute_line(
            _get(battery_buyback, "quantity", "qty"),
            _get(battery_buyback, "unit_price", "unitPrice"),
            _get(battery_buyback, "discount"),
            0,
        )

    priced = lines + services
    gross = sum((line.total_price for line in priced), ZERO)
    exact_gross = sum((line.exact_total for line in priced), ZERO)

    overall_pct = to_decimal(overall_discount)
    exact_overall = exact_gross * overall_pct / HUNDRED
    exact_buyback = buyback.exact_total if buyback else ZERO

    grand_total = round2(gross - round2(exact_overall) - round2(exact_buyback))
    exact_grand = exact_gross - exact_overall - exact_buyback

    return DocumentTotals(
        subtotal=round2(sum((line.subtotal for line in priced), ZERO)),
        total_discount=round2(sum((line.discount_amount for line in priced), ZERO)),
        total_tax=round2(sum((line.tax_amount for line in priced), ZERO)),
        overall_discount=overall_pct,
        overall_discount_amount=round2(exact_overall),
        battery_buyback_amount=buyback.total_price if buyback else ZERO,
        grand_total=grand_total,
        round_off=(grand_total - exact_grand).quantize(Q, rounding=ROUND_HALF_UP),
        items=lines,
        service_charges=services,
        battery_buyback=buyback,
    )


# ─── AMC / CAMC ───────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OfferTotals:
    amount: Decimal
    gst_amount: Decimal
    total: Decimal

    def as_dict(self) -> dict[str, str]:
        return {
            "total_amc_amount_per_dg": str(self.amount),
            "gst_amount": str(self.gst_amount),
            "total_amc_cost": str(self.total),
        }


@dataclass
class AMCTotals:
    offer_subtotal: Decimal = ZERO
    offer_tax: Decimal = ZERO
    offer_total: Decimal = ZERO
    spares_subtotal: Decimal = ZERO
    spares_tax: Decimal = ZERO
    spares_total: Decimal = ZERO
    grand_total: Decimal = ZERO
    offer_items: list[OfferTotals] = field(default_factory=list)
    spares_items: list[LineTotals] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "offer_subtotal": str(self.offer_subtotal),
            "offer_tax": str(self.offer_tax),
            "offer_total": str(self.offer_total),
            "spares_subtotal": str(self.spares_subtotal),
            "spares_tax": str(self.spares_tax),
            "spares_total": str(self.spares_total),
            "grand_total": str(self.grand_total),
            "offer_items": [o.as_dict() for o in self.offer_items],
            "spares_items": [s.as_dict() for s in self.spares_items],
        }


def compute_offer(qty: Any, cost_per_dg: Any, *, gst_included: bool, gst_rate: Any) -> OfferTotals:
    amount = to_decimal(qty) * to_decimal(cost_per_dg)
    gst = amount * to_decimal(gst_rate) / HUNDRED if gst_included else ZERO
    return OfferTotals(amount=round2(amount), gst_amount=round2(gst), total=round2(amount + gst))


def calculate_amc_totals(
    offer_items: Iterable[Any],
    spares_items: Iterable[Any] = (),
    *,
    gst_included: bool = True,
    gst_rate: Any = 18,
) -> AMCTotals:
    offers = [
        compute_offer(
            _get(row, "qty", "quantity"),
            _get(row, "amc_cost_per_dg", "amcCostPerDG"),
            gst_included=gst_included,
            gst_rate=gst_rate,
        )
        for row in offer_items
    ]
    spares = [line_from_row(row, tax_keys=("gst_rate", "gstRate")) for row in spares_items]

    offer_total = sum((o.total for o in offers), ZERO)
    spares_total = sum((s.total_price for s in spares), ZERO)
    return AMCTotals(
        offer_subtotal=sum((o.amount for o in offers), ZERO),
        offer_tax=sum((o.gst_amount for o in offers), ZERO),
        offer_total=offer_total,
        spares_subtotal=sum((s.discounted_amount for s in spares), ZERO),
        spares_tax=sum((s.tax_amount for s in spares), ZERO),
        spares_total=spares_total,
        grand_total=round2(offer_total + spares_total),
        offer_items=offers,
        spares_items=spares,
    )


# ─── DG invoice ───────────────────────────────────────────────────────────────


@dataclass
class InvoiceTotals:
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_tax: Decimal = ZERO
    additional_charges: Decimal = ZERO
    transport_amount: Decimal = ZERO
    transport_gst: Decimal = ZERO
    transport_total: Decimal = ZERO
    grand_total: Decimal = ZERO
    round_off: Decimal = ZERO
    items: list[LineTotals] = field(default_factory=list)


def calculate_invoice_totals(
    items: Iterable[Any],
    additional_charges: Any | None = None,
    transport_charges: Any | None = None,
) -> InvoiceTotals:
    """Totals for a DG invoice: GST items, flat extra charges, taxed transport."""
    lines = [line_from_row(row, tax_keys=("gst_rate", "gstRate")) for row in items]

    extras = ZERO
    if additional_charges is not None:
        for key in ("freight", "insurance", "packing", "other"):
            extras += to_decimal(_get(additional_charges, key))

    transport_amount = transport_gst = ZERO
    if transport_charges is not None:
        qty = _get(transport_charges, "quantity")
        price = _get(transport_charges, "unit_price", "unitPrice")
        if to_decimal(qty) and to_decimal(price):
            transport_amount = to_decimal(qty) * to_decimal(price)
        else:
            transport_amount = to_decimal(_get(transport_charges, "amount"))
        rate = to_decimal(_get(transport_charges, "gst_rate", "gstRate"))
        transport_gst = transport_amount * rate / HUNDRED

    items_total = sum((line.total_price for line in lines), ZERO)
    exact_items = sum((line.exact_total for line in lines), ZERO)
    transport_total = round2(transport_amount + transport_gst)

    grand_total = round2(items_total + round2(extras) + transport_total)
    exact_grand = exact_items + extras + transport_amount + transport_gst

    return InvoiceTotals(
        subtotal=round2(sum((line.subtotal for line in lines), ZERO)),
        total_discount=round2(sum((line.discount_amount for line in lines), ZERO)),
        total_tax=round2(sum((line.tax_amount for line in lines), ZERO)),
        additional_charges=round2(extras),
        transport_amount=round2(transport_amount),
        transport_gst=round2(transport_gst),
        transport_total=transport_total,
        grand_total=grand_total,
        round_off=(grand_total - exact_grand).quantize(Q, rounding=ROUND_HALF_UP),
        items=lines,
    )


# ─── Customer PO ──────────────────────────────────────────────────────────────


@dataclass
class POTotals:
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    items: list[LineTotals] = field(default_factory=list)


def calculate_po_totals(items: Iterable[Any], tax_rate: Any = 0) -> POTotals:
    """Customer PO totals: lines carry discounts only, one tax rate on the net."""
    lines = [line_from_row(row, tax_keys=()) for row in items]

    subtotal = round2(sum((line.subtotal for line in lines), ZERO))
    total_discount = round2(sum((line.discount_amount for line in lines), ZERO))
    tax = round2((subtotal - total_discount) * to_decimal(tax_rate) / HUNDRED)
    return POTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        tax_amount=tax,
        total_amount=subtotal - total_discount + tax,
        items=lines,
    )
