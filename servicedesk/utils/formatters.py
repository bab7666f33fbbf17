"""
Utilidades de formateo para templates, PDFs y folios.
Montos y fechas en estilo mexicano.
"""
import re
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union, Optional, Tuple

FOLIO_PATTERN = re.compile(r'^(?P<prefix>[A-Za-z]+)-(?P<year>\d{4})-(?P<number>\d+)$')


def money_mx(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Formatea un monto en estilo mexicano con exactamente 2 decimales.
    Separador de miles: coma (,). Separador decimal: punto (.)

    Examples:
        money_mx(18250) -> "18,250.00"
        money_mx(1234.5) -> "1,234.50"
        money_mx(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    return f"{num:,.2f}"


def date_mx(value: Union[date, datetime, str, None]) -> str:
    """
    Formatea una fecha como DD/MM/YYYY.

    Examples:
        date_mx(date(2025, 1, 12)) -> "12/01/2025"
        date_mx("2025-01-12") -> "12/01/2025"
    """
    if value is None or value == "":
        return "-"

    if isinstance(value, str):
        try:
            value = parse_date_input(value)
        except ValueError:
            return value

    if isinstance(value, datetime):
        value = value.date()

    if not isinstance(value, date):
        return "-"

    return value.strftime("%d/%m/%Y")


def parse_date_input(value: Union[date, datetime, str, None]) -> Optional[date]:
    """
    Parse a date coming from a form or JSON payload.

    Accepts YYYY-MM-DD, DD/MM/YYYY and ISO datetimes. Blank input
    returns None.

    Raises:
        ValueError: if the value is not a recognizable date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    cleaned = str(value).strip()
    if not cleaned:
        return None

    for fmt in ('%Y-%m-%d', '%d/%m/%Y'):
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            pass

    try:
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        raise ValueError(f'Fecha inválida: {cleaned}. Usa AAAA-MM-DD o DD/MM/AAAA')


def parse_flag(value) -> bool:
    """Checkbox/JSON boolean: True, 1, "1", "true", "on", "si" are truthy."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ('1', 'true', 'on', 'yes', 'si', 'sí')


def format_folio(prefix: str, year: int, number: int) -> str:
    """
    Human-readable document number.

    Examples:
        format_folio('COT', 2025, 100) -> "COT-2025-100"
        format_folio('ORD', 2025, 1234) -> "ORD-2025-1234"
    """
    return f"{prefix}-{year}-{number}"


def parse_folio(folio: Optional[str]) -> Optional[Tuple[str, int, int]]:
    """
    Split a folio into (prefix, year, number).

    Returns None for anything that is not PREFIX-YYYY-N, for example the
    legacy "001" placeholders.
    """
    if not folio:
        return None
    match = FOLIO_PATTERN.match(folio.strip())
    if not match:
        return None
    return match.group('prefix').upper(), int(match.group('year')), int(match.group('number'))
