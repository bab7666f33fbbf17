"""
Line item totals for quotations and service records.

Quotations net a per-item discount and apply one document-level IVA flag.
Service records add labor to their parts and use either the flat IVA
toggle or per-part tax. Every intermediate sum keeps full Decimal
precision; only the final totals are rounded to cents.
"""
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional

from servicedesk.exceptions import InvalidLineItem
from servicedesk.utils.money import ZERO, HUNDRED, to_decimal, round_money, percent_of, sum_amounts

DEFAULT_TAX_RATE = Decimal('0.16')

# Accepted input keys, English first, then the field names used by the
# existing quotation/service forms.
_QUANTITY_KEYS = ('quantity', 'qty', 'cantidad')
_PRICE_KEYS = ('unit_price', 'price', 'precio_publico', 'precioUnitario', 'costoPublico')
_COST_KEYS = ('unit_cost', 'cost', 'costo_empresa', 'costoEmpresa')
_DISCOUNT_KEYS = ('discount_percent', 'discount', 'descuento')
_TAX_KEYS = ('tax_percent', 'tax', 'impuesto')
_DESCRIPTION_KEYS = ('description', 'desc', 'articulo', 'producto', 'descripcion')


@dataclass(frozen=True)
class LineItem:
    """One row of a quotation or service record."""
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal = ZERO
    discount_percent: Decimal = ZERO
    tax_percent: Decimal = ZERO
    description: str = ''

    def __post_init__(self):
        # Quantities are whole units; fractional input is floored.
        quantity = self.quantity
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            try:
                quantity = math.floor(to_decimal(quantity))
            except ValueError:
                raise InvalidLineItem('quantity', self.quantity)
        object.__setattr__(self, 'quantity', int(quantity))
        for name in ('unit_price', 'unit_cost', 'discount_percent', 'tax_percent'):
            raw = getattr(self, name)
            try:
                object.__setattr__(self, name, to_decimal(raw))
            except ValueError:
                raise InvalidLineItem(name, raw)

    @property
    def gross(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def discount_amount(self) -> Decimal:
        return percent_of(self.gross, self.discount_percent)

    @property
    def line_total(self) -> Decimal:
        """quantity * unit_price * (1 - discount/100), unrounded."""
        return self.gross - self.discount_amount

    @property
    def cost_total(self) -> Decimal:
        return self.quantity * self.unit_cost

    @property
    def tax_amount(self) -> Decimal:
        return percent_of(self.line_total, self.tax_percent)


@dataclass(frozen=True)
class TotalsFlags:
    """
    Calculation switches.

    document_level_tax: apply the IVA rate to the whole subtotal.
    per_item_tax: honor each item's tax_percent (service records only).
        Ignored when document_level_tax is set.
    """
    document_level_tax: bool = False
    per_item_tax: bool = False


@dataclass(frozen=True)
class DocumentTotals:
    """Aggregate amounts, rounded to cents."""
    subtotal: Decimal
    total_discount: Decimal
    total_tax: Decimal
    grand_total: Decimal
    total_cost: Decimal
    profit: Decimal
    margin_percent: Decimal


def _validate(item: LineItem, index: int) -> None:
    if item.quantity < 0:
        raise InvalidLineItem('quantity', item.quantity, index)
    if item.unit_price < 0:
        raise InvalidLineItem('unit_price', item.unit_price, index)
    if item.unit_cost < 0:
        raise InvalidLineItem('unit_cost', item.unit_cost, index)
    if not ZERO <= item.discount_percent <= HUNDRED:
        raise InvalidLineItem('discount_percent', item.discount_percent, index)
    if not ZERO <= item.tax_percent <= HUNDRED:
        raise InvalidLineItem('tax_percent', item.tax_percent, index)


def compute_totals(
    items: Iterable[LineItem],
    flags: Optional[TotalsFlags] = None,
    tax_rate: Decimal = DEFAULT_TAX_RATE
) -> DocumentTotals:
    """
    Compute subtotal, discount, tax, grand total and margin for items.

    Raises:
        InvalidLineItem: if an item has a negative amount or a percentage
            outside 0-100.
    """
    flags = flags or TotalsFlags()
    items = list(items)
    for index, item in enumerate(items):
        _validate(item, index)

    subtotal = sum_amounts(item.line_total for item in items)
    total_discount = sum_amounts(item.discount_amount for item in items)
    total_cost = sum_amounts(item.cost_total for item in items)

    if flags.document_level_tax:
        total_tax = subtotal * to_decimal(tax_rate)
    elif flags.per_item_tax:
        total_tax = sum_amounts(item.tax_amount for item in items)
    else:
        total_tax = ZERO

    profit = subtotal - total_cost
    margin_percent = profit / subtotal * HUNDRED if subtotal else ZERO

    # grand total is the sum of the rounded parts so the printed rows add up
    rounded_subtotal = round_money(subtotal)
    rounded_tax = round_money(total_tax)

    return DocumentTotals(
        subtotal=rounded_subtotal,
        total_discount=round_money(total_discount),
        total_tax=rounded_tax,
        grand_total=rounded_subtotal + rounded_tax,
        total_cost=round_money(total_cost),
        profit=round_money(profit),
        margin_percent=round_money(margin_percent),
    )


def _first(data: Mapping[str, Any], keys) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _clamp_amount(raw: Any, upper: Optional[Decimal] = None) -> Decimal:
    """Blank or garbage -> 0, negatives -> 0, optional upper bound."""
    if raw is None:
        return ZERO
    try:
        value = Decimal(str(raw).strip().replace(',', ''))
    except (InvalidOperation, ValueError):
        return ZERO
    if not value.is_finite() or value < 0:
        return ZERO
    if upper is not None and value > upper:
        return upper
    return value


def line_item_from_input(data: Mapping[str, Any]) -> LineItem:
    """
    Build a LineItem from raw form/JSON input, clamping instead of failing.

    This is the capture boundary: negatives become 0, percentages are
    kept within 0-100, fractional quantities are floored, and a missing
    quantity means 1.
    """
    raw_quantity = _first(data, _QUANTITY_KEYS)
    if raw_quantity is None or str(raw_quantity).strip() == '':
        quantity = 1
    else:
        quantity = math.floor(_clamp_amount(raw_quantity))

    description = _first(data, _DESCRIPTION_KEYS)
    return LineItem(
        quantity=quantity,
        unit_price=_clamp_amount(_first(data, _PRICE_KEYS)),
        unit_cost=_clamp_amount(_first(data, _COST_KEYS)),
        discount_percent=_clamp_amount(_first(data, _DISCOUNT_KEYS), HUNDRED),
        tax_percent=_clamp_amount(_first(data, _TAX_KEYS), HUNDRED),
        description=str(description).strip() if description is not None else '',
    )


def line_items_from_input(rows: Optional[Iterable[Mapping[str, Any]]]) -> List[LineItem]:
    """Clamp every row of a payload; a missing list means no items."""
    return [line_item_from_input(row) for row in (rows or [])]


def service_line_items(labor_amount, parts: Iterable[LineItem]) -> List[LineItem]:
    """Labor as a single untaxed line (when non-zero), followed by the parts."""
    items = []
    labor = to_decimal(labor_amount)
    if labor:
        items.append(LineItem(quantity=1, unit_price=labor, description='Mano de obra'))
    items.extend(parts)
    return items
