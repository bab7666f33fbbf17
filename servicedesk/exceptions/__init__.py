"""Custom exceptions for the service desk application."""

class ServiceDeskError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(ServiceDeskError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(ServiceDeskError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class InvalidLineItem(BusinessLogicError):
    """Raised when a line item breaks its non-negativity or range rules."""
    def __init__(self, field, value, index=None):
        position = f" (renglón {index + 1})" if index is not None else ""
        message = f"Valor inválido para {field}{position}: {value}"
        super().__init__(message, status_code=422, payload={'field': field})
        self.field = field
        self.value = value
        self.index = index

class SequenceUnavailable(ServiceDeskError):
    """Raised when a folio cannot be allocated; the caller may retry."""
    def __init__(self, message="No se pudo asignar el folio. Intenta de nuevo."):
        super().__init__(message, 503, {'retryable': True})

class TokenIssueConflict(BusinessLogicError):
    """Raised when another writer attached a public token first."""
    def __init__(self, record_id):
        super().__init__(f"Token público ya asignado al servicio {record_id}", status_code=409)
        self.record_id = record_id

class RecordNotFound(NotFoundError):
    """Raised by the public resolver; never says why the lookup failed."""
    def __init__(self, message="Not Found"):
        super().__init__(message)

class UnauthorizedError(ServiceDeskError):
    """Raised when the request carries no owner session."""
    def __init__(self, message="Debes iniciar sesión para acceder a esta página."):
        super().__init__(message, 401)
