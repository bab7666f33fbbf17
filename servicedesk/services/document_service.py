"""
Document projection - turns entity data + totals + identity into the
immutable documents handed to templates, PDFs and JSON responses.

Each document type has one producer and two outputs. The customer/public
dataclass declares only what a customer may see. The internal dataclass
extends it with cost and margin fields. The customer view is always built
from the public dataclass's own field list, so a field added to the
internal class can never show up on the customer's copy.
"""
from dataclasses import dataclass, fields, asdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from servicedesk.models import SERVICE_TYPE_LABELS, status_label, status_progress
from servicedesk.services.totals_service import LineItem, DocumentTotals
from servicedesk.utils.money import round_money, to_decimal

QUOTE_VALID_DAYS = 30
QUOTE_PREVIEW_VALID_DAYS = 15


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


class _DocumentMixin:
    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict: Decimals as 2-place strings, dates as ISO."""
        return _jsonable(asdict(self))


def _narrow(instance, target_cls):
    """Copy only the fields target_cls declares."""
    return target_cls(**{f.name: getattr(instance, f.name) for f in fields(target_cls)})


@dataclass(frozen=True)
class DocumentIdentity:
    number: str
    issued_on: date
    due_on: Optional[date]


def build_identity(number: str, issued_on: Optional[date] = None,
                   due_on: Optional[date] = None, *, valid_days: Optional[int]) -> DocumentIdentity:
    """
    Identity fields with the default-date policy applied.

    issued_on defaults to today. due_on defaults to issued_on + valid_days.
    valid_days has no default on purpose: standalone previews use
    QUOTE_PREVIEW_VALID_DAYS, the main quote flow QUOTE_VALID_DAYS, and
    service records pass None (no due date unless one was given).
    """
    issued_on = issued_on or date.today()
    if due_on is None and valid_days is not None:
        due_on = issued_on + timedelta(days=valid_days)
    return DocumentIdentity(number=number, issued_on=issued_on, due_on=due_on)


@dataclass(frozen=True)
class DocumentLine(_DocumentMixin):
    """Customer-visible row."""
    description: str
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    tax_percent: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class CostLine(_DocumentMixin):
    """Internal cost basis of a row."""
    description: str
    quantity: int
    unit_cost: Decimal
    cost_total: Decimal


def _document_lines(items: Sequence[LineItem]) -> Tuple[DocumentLine, ...]:
    return tuple(
        DocumentLine(
            description=item.description,
            quantity=item.quantity,
            unit_price=round_money(item.unit_price),
            discount_percent=item.discount_percent,
            tax_percent=item.tax_percent,
            line_total=round_money(item.line_total),
        )
        for item in items
    )


def _cost_lines(items: Sequence[LineItem]) -> Tuple[CostLine, ...]:
    return tuple(
        CostLine(
            description=item.description,
            quantity=item.quantity,
            unit_cost=round_money(item.unit_cost),
            cost_total=round_money(item.cost_total),
        )
        for item in items
    )


# ---------------------------------------------------------------------
# Quotations
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class CustomerQuoteDocument(_DocumentMixin):
    """What the customer receives (PDF / shared copy)."""
    folio: str
    issued_on: date
    valid_until: Optional[date]
    customer_name: str
    customer_company: Optional[str]
    customer_phone: Optional[str]
    customer_email: Optional[str]
    terms: Optional[str]
    include_tax: bool
    lines: Tuple[DocumentLine, ...]
    subtotal: Decimal
    total_discount: Decimal
    total_tax: Decimal
    grand_total: Decimal


@dataclass(frozen=True)
class QuoteDocument(CustomerQuoteDocument):
    """Internal quotation, with profit analysis."""
    cost_lines: Tuple[CostLine, ...]
    total_cost: Decimal
    profit: Decimal
    margin_percent: Decimal

    def customer_view(self) -> CustomerQuoteDocument:
        return _narrow(self, CustomerQuoteDocument)


def project_quote(entity: Mapping[str, Any], totals: DocumentTotals,
                  identity: DocumentIdentity) -> QuoteDocument:
    """
    Build the internal quotation document.

    entity carries the customer fields, include_tax, terms and 'items'
    (a sequence of LineItem).
    """
    items = tuple(entity.get('items') or ())
    return QuoteDocument(
        folio=identity.number,
        issued_on=identity.issued_on,
        valid_until=identity.due_on,
        customer_name=entity.get('customer_name') or '',
        customer_company=entity.get('customer_company'),
        customer_phone=entity.get('customer_phone'),
        customer_email=entity.get('customer_email'),
        terms=entity.get('terms'),
        include_tax=bool(entity.get('include_tax')),
        lines=_document_lines(items),
        subtotal=totals.subtotal,
        total_discount=totals.total_discount,
        total_tax=totals.total_tax,
        grand_total=totals.grand_total,
        cost_lines=_cost_lines(items),
        total_cost=totals.total_cost,
        profit=totals.profit,
        margin_percent=totals.margin_percent,
    )


# ---------------------------------------------------------------------
# Service records
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class PublicServiceDocument(_DocumentMixin):
    """Read-only projection for the anonymous tracking page."""
    order_folio: str
    service_type: str
    service_type_label: str
    status: str
    status_label: str
    progress: int
    customer_name: str
    device_description: Optional[str]
    problem_description: Optional[str]
    received_on: date
    delivery_on: Optional[date]
    lines: Tuple[DocumentLine, ...]
    subtotal: Decimal
    total_tax: Decimal
    grand_total: Decimal
    advance_payment: Decimal
    balance_due: Decimal


@dataclass(frozen=True)
class ServiceDocument(PublicServiceDocument):
    """Internal service record, as seen by staff."""
    customer_phone: Optional[str]
    customer_email: Optional[str]
    diagnosis: Optional[str]
    include_tax: bool
    public_token: Optional[str]
    cost_lines: Tuple[CostLine, ...]
    total_cost: Decimal
    profit: Decimal
    margin_percent: Decimal

    @property
    def public(self) -> PublicServiceDocument:
        return _narrow(self, PublicServiceDocument)


def _public_service_fields(entity: Mapping[str, Any], totals: DocumentTotals,
                           identity: DocumentIdentity) -> Dict[str, Any]:
    items = tuple(entity.get('items') or ())
    advance = round_money(to_decimal(entity.get('advance_payment') or 0))
    service_type = entity.get('service_type') or ''
    status = entity.get('status') or ''
    return {
        'order_folio': identity.number,
        'service_type': service_type,
        'service_type_label': SERVICE_TYPE_LABELS.get(service_type, service_type),
        'status': status,
        'status_label': status_label(status),
        'progress': status_progress(status),
        'customer_name': entity.get('customer_name') or '',
        'device_description': entity.get('device_description'),
        'problem_description': entity.get('problem_description'),
        'received_on': identity.issued_on,
        'delivery_on': identity.due_on,
        'lines': _document_lines(items),
        'subtotal': totals.subtotal,
        'total_tax': totals.total_tax,
        'grand_total': totals.grand_total,
        'advance_payment': advance,
        'balance_due': totals.grand_total - advance,
    }


def project_service(entity: Mapping[str, Any], totals: DocumentTotals,
                    identity: DocumentIdentity) -> ServiceDocument:
    """
    Build the internal service document.

    entity carries the record fields and 'items' (labor + parts as
    LineItem, see totals_service.service_line_items).
    """
    items = tuple(entity.get('items') or ())
    return ServiceDocument(
        **_public_service_fields(entity, totals, identity),
        customer_phone=entity.get('customer_phone'),
        customer_email=entity.get('customer_email'),
        diagnosis=entity.get('diagnosis'),
        include_tax=bool(entity.get('include_tax')),
        public_token=entity.get('public_token'),
        cost_lines=_cost_lines(items),
        total_cost=totals.total_cost,
        profit=totals.profit,
        margin_percent=totals.margin_percent,
    )


def project_public_service(entity: Mapping[str, Any], totals: DocumentTotals,
                           identity: DocumentIdentity) -> PublicServiceDocument:
    """
    Build the anonymous tracking document.

    Never constructs the internal document: cost lines, profit, margin,
    contact data and the token are not read from entity at all.
    """
    return PublicServiceDocument(**_public_service_fields(entity, totals, identity))
