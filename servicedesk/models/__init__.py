"""Models package - exports all SQLAlchemy models."""
from servicedesk.models.document_sequence import DocumentSequence, DocumentKind
from servicedesk.models.quote import Quote
from servicedesk.models.quote_line import QuoteLine
from servicedesk.models.service_record import (
    ServiceRecord, ServiceType, ServiceStatus,
    SERVICE_TYPE_LABELS, STATUS_OPTIONS,
    normalize_status, status_label, status_progress
)
from servicedesk.models.service_part import ServicePart

__all__ = [
    'DocumentSequence', 'DocumentKind',
    'Quote', 'QuoteLine',
    'ServiceRecord', 'ServiceType', 'ServiceStatus', 'ServicePart',
    'SERVICE_TYPE_LABELS', 'STATUS_OPTIONS',
    'normalize_status', 'status_label', 'status_progress',
]
