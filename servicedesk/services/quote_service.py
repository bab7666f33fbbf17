"""Quote service - preview, create, update and load quotations (cotizaciones)."""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from servicedesk.exceptions import BusinessLogicError, NotFoundError
from servicedesk.models import Quote, QuoteLine, DocumentKind
from servicedesk.services.document_service import (
    QuoteDocument, build_identity, project_quote,
    QUOTE_VALID_DAYS, QUOTE_PREVIEW_VALID_DAYS
)
from servicedesk.services.sequence_service import get_allocator, DEFAULT_MAX_ATTEMPTS
from servicedesk.services.totals_service import (
    LineItem, TotalsFlags, DEFAULT_TAX_RATE,
    compute_totals, line_items_from_input
)
from servicedesk.utils.formatters import format_folio, parse_date_input, parse_flag

logger = logging.getLogger(__name__)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _date_field(data: Mapping[str, Any], key: str) -> Optional[date]:
    try:
        return parse_date_input(data.get(key))
    except ValueError as e:
        raise BusinessLogicError(str(e), payload={'field': key})


def _quote_entity(data: Mapping[str, Any], items: List[LineItem]) -> Dict[str, Any]:
    return {
        'customer_name': _clean(data.get('customer_name')) or '',
        'customer_company': _clean(data.get('customer_company')),
        'customer_phone': _clean(data.get('customer_phone')),
        'customer_email': _clean(data.get('customer_email')),
        'terms': _clean(data.get('terms')),
        'include_tax': parse_flag(data.get('include_tax')),
        'items': items,
    }


def _flags(include_tax: bool) -> TotalsFlags:
    return TotalsFlags(document_level_tax=include_tax)


def _validate_quote_input(data: Mapping[str, Any]) -> List[LineItem]:
    if not _clean(data.get('customer_name')):
        raise BusinessLogicError('Nombre de cliente requerido.', payload={'field': 'customer_name'})
    items = line_items_from_input(data.get('items'))
    if not items:
        raise BusinessLogicError('La cotización debe tener al menos un artículo.', payload={'field': 'items'})
    return items


def _line_items(quote: Quote) -> List[LineItem]:
    return [
        LineItem(
            quantity=line.quantity,
            unit_price=line.unit_price,
            unit_cost=line.unit_cost,
            discount_percent=line.discount_percent,
            description=line.description,
        )
        for line in quote.lines
    ]


def _replace_lines(quote: Quote, items: List[LineItem], rounded_totals) -> None:
    quote.lines = [
        QuoteLine(
            position=position,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            unit_cost=item.unit_cost,
            discount_percent=item.discount_percent,
            line_total=rounded_totals[position],
        )
        for position, item in enumerate(items)
    ]


def next_folio(session: Session, owner_id: str, prefix: str = 'COT', year: Optional[int] = None) -> str:
    """Placeholder folio for the editor; not reserved."""
    year = year or date.today().year
    number = get_allocator(session).peek_next_number(owner_id, DocumentKind.QUOTE, year)
    return format_folio(prefix, year, number)


def preview_quote(session: Session, owner_id: str, data: Mapping[str, Any],
                  prefix: str = 'COT', valid_days: int = QUOTE_PREVIEW_VALID_DAYS,
                  tax_rate: Decimal = DEFAULT_TAX_RATE) -> QuoteDocument:
    """
    Compute an unsaved quotation.

    Inputs are clamped rather than rejected, and an empty item list is
    fine, so the editor can preview while the user types. The folio is
    only a placeholder.
    """
    items = line_items_from_input(data.get('items'))
    entity = _quote_entity(data, items)
    issued_on = _date_field(data, 'issued_on') or date.today()
    identity = build_identity(
        next_folio(session, owner_id, prefix, issued_on.year),
        issued_on,
        _date_field(data, 'valid_until'),
        valid_days=valid_days
    )
    totals = compute_totals(items, _flags(entity['include_tax']), tax_rate)
    return project_quote(entity, totals, identity)


def create_quote(session: Session, owner_id: str, data: Mapping[str, Any],
                 prefix: str = 'COT', valid_days: int = QUOTE_VALID_DAYS,
                 tax_rate: Decimal = DEFAULT_TAX_RATE,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> int:
    """
    Persist a new quotation with a freshly allocated folio.

    The folio is allocated (and committed) before the quote is staged.
    If saving the quote then fails, that number is skipped, never reused.

    Raises:
        BusinessLogicError: missing customer name, no items or a bad date.
        SequenceUnavailable: no folio could be allocated; safe to retry.
    """
    items = _validate_quote_input(data)
    entity = _quote_entity(data, items)
    issued_on = _date_field(data, 'issued_on') or date.today()
    identity = build_identity('', issued_on, _date_field(data, 'valid_until'), valid_days=valid_days)
    totals = compute_totals(items, _flags(entity['include_tax']), tax_rate)

    number = get_allocator(session, max_attempts).next_number(owner_id, DocumentKind.QUOTE, issued_on.year)
    folio = format_folio(prefix, issued_on.year, number)

    try:
        quote = Quote(
            owner_id=owner_id,
            folio=folio,
            folio_year=issued_on.year,
            folio_number=number,
            customer_name=entity['customer_name'],
            customer_company=entity['customer_company'],
            customer_phone=entity['customer_phone'],
            customer_email=entity['customer_email'],
            issued_on=identity.issued_on,
            valid_until=identity.due_on,
            include_tax=entity['include_tax'],
            terms=entity['terms'],
            subtotal=totals.subtotal,
            total_tax=totals.total_tax,
            total=totals.grand_total
        )
        document = project_quote(entity, totals, identity)
        _replace_lines(quote, items, [line.line_total for line in document.lines])
        session.add(quote)
        session.commit()
        logger.info(f"[FOLIO] Quote {folio} saved for owner {owner_id}")
        return quote.id
    except Exception:
        session.rollback()
        logger.error(f"[FOLIO] Quote {folio} could not be saved; number {number} skipped")
        raise


def _get_quote(session: Session, quote_id: int, owner_id: str) -> Quote:
    quote = session.query(Quote).filter(Quote.id == quote_id, Quote.owner_id == owner_id).first()
    if not quote:
        raise NotFoundError(f'Cotización {quote_id} no encontrada.')
    return quote


def update_quote(session: Session, quote_id: int, owner_id: str, data: Mapping[str, Any],
                 valid_days: int = QUOTE_VALID_DAYS,
                 tax_rate: Decimal = DEFAULT_TAX_RATE) -> None:
    """
    Replace a quotation's customer data and items.

    The folio assigned on creation is kept; no number is allocated.
    Dates missing from data keep their stored values. The issue date may
    move, but not out of the folio's year.

    Raises:
        BusinessLogicError: missing customer or items, a bad date, or an
            issue date in a different year than the folio.
        NotFoundError: if the quote does not exist for this owner.
    """
    try:
        quote = _get_quote(session, quote_id, owner_id)
        items = _validate_quote_input(data)
        entity = _quote_entity(data, items)
        issued_on = _date_field(data, 'issued_on') or quote.issued_on
        if issued_on.year != quote.folio_year:
            raise BusinessLogicError(
                f'La fecha debe quedar en {quote.folio_year}, el año del folio {quote.folio}.',
                payload={'field': 'issued_on'}
            )
        valid_until = _date_field(data, 'valid_until') or quote.valid_until
        identity = build_identity(quote.folio, issued_on, valid_until, valid_days=valid_days)
        totals = compute_totals(items, _flags(entity['include_tax']), tax_rate)
        document = project_quote(entity, totals, identity)

        quote.customer_name = entity['customer_name']
        quote.customer_company = entity['customer_company']
        quote.customer_phone = entity['customer_phone']
        quote.customer_email = entity['customer_email']
        quote.terms = entity['terms']
        quote.include_tax = entity['include_tax']
        quote.issued_on = identity.issued_on
        quote.valid_until = identity.due_on
        quote.subtotal = totals.subtotal
        quote.total_tax = totals.total_tax
        quote.total = totals.grand_total
        _replace_lines(quote, items, [line.line_total for line in document.lines])

        session.commit()
    except Exception:
        session.rollback()
        raise


def get_quote_document(session: Session, quote_id: int, owner_id: str,
                       tax_rate: Decimal = DEFAULT_TAX_RATE) -> QuoteDocument:
    """Internal document of a saved quotation, totals recomputed from its lines."""
    quote = _get_quote(session, quote_id, owner_id)
    items = _line_items(quote)
    entity = {
        'customer_name': quote.customer_name,
        'customer_company': quote.customer_company,
        'customer_phone': quote.customer_phone,
        'customer_email': quote.customer_email,
        'terms': quote.terms,
        'include_tax': quote.include_tax,
        'items': items,
    }
    identity = build_identity(quote.folio, quote.issued_on, quote.valid_until, valid_days=None)
    totals = compute_totals(items, _flags(quote.include_tax), tax_rate)
    return project_quote(entity, totals, identity)


def delete_quote(session: Session, quote_id: int, owner_id: str) -> str:
    """
    Delete a quotation and its lines; returns the deleted folio.

    The folio number is not handed out again.

    Raises:
        NotFoundError: if the quote does not exist for this owner.
    """
    try:
        quote = _get_quote(session, quote_id, owner_id)
        folio = quote.folio
        session.delete(quote)
        session.commit()
        logger.info(f"[FOLIO] Quote {folio} deleted by owner {owner_id}")
        return folio
    except Exception:
        session.rollback()
        raise
