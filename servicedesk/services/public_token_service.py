"""
Public access tokens for anonymous service tracking.

A token is an opaque, 128-bit random string stored on the service record.
It is the only access control of the /track pages, so it must come from
a CSPRNG and is never derived from record data. Validity is simply
"a record with this token exists right now"; there is no expiry or
revocation yet.
"""
import hmac
import logging
import re
import secrets

from sqlalchemy import update
from sqlalchemy.orm import Session

from servicedesk.blueprints.metrics import public_tokens_issued_total, public_lookups_total
from servicedesk.exceptions import RecordNotFound, TokenIssueConflict
from servicedesk.models import ServiceRecord

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16

# token_urlsafe output, plus the UUID-style tokens issued by older versions
TOKEN_PATTERN = re.compile(r'^[A-Za-z0-9_-]{16,64}$')


def generate_token() -> str:
    """New random token (22 url-safe characters)."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def _mask(token: str) -> str:
    return f"{token[:4]}…" if token else '-'


def _attach_token(session: Session, record_id: int, token: str) -> None:
    """
    Store token on the record only if it has none yet.

    Raises:
        TokenIssueConflict: if the record already got a token.
    """
    result = session.execute(
        update(ServiceRecord)
        .where(ServiceRecord.id == record_id, ServiceRecord.public_token.is_(None))
        .values(public_token=token)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        raise TokenIssueConflict(record_id)
    session.commit()


def issue_or_reuse(session: Session, record_id: int, owner_id: str = None) -> str:
    """
    Return the record's public token, creating it on first use.

    Safe to call concurrently: if two callers race, the loser re-reads
    and returns the winner's token, so the record always ends up with
    exactly one token.

    Raises:
        RecordNotFound: if the record does not exist (or belongs to
            another owner when owner_id is given).
    """
    query = session.query(ServiceRecord).filter(ServiceRecord.id == record_id)
    if owner_id is not None:
        query = query.filter(ServiceRecord.owner_id == owner_id)
    record = query.first()

    if not record:
        raise RecordNotFound(f'Servicio {record_id} no encontrado.')

    if record.public_token:
        return record.public_token

    token = generate_token()
    try:
        _attach_token(session, record.id, token)
    except TokenIssueConflict:
        winner = session.query(ServiceRecord.public_token).filter(
            ServiceRecord.id == record_id
        ).scalar()
        if not winner:
            raise RecordNotFound(f'Servicio {record_id} no encontrado.')
        logger.info(f"[TOKEN] Concurrent issue on service {record_id}; reusing {_mask(winner)}")
        return winner

    public_tokens_issued_total.inc()
    logger.info(f"[TOKEN] Issued {_mask(token)} for service {record_id}")
    return token


def resolve(session: Session, token: str) -> ServiceRecord:
    """
    Find the service record a token grants access to.

    Raises:
        RecordNotFound: for unknown and malformed tokens alike.
    """
    if not isinstance(token, str) or not TOKEN_PATTERN.match(token):
        public_lookups_total.labels(result='not_found').inc()
        raise RecordNotFound()

    record = session.query(ServiceRecord).filter(ServiceRecord.public_token == token).first()
    if record is None or not hmac.compare_digest(record.public_token.encode(), token.encode()):
        public_lookups_total.labels(result='not_found').inc()
        raise RecordNotFound()

    public_lookups_total.labels(result='found').inc()
    return record


def build_public_url(base_url: str, token: str) -> str:
    """Shareable tracking link, e.g. https://example.com/track/<token>."""
    return f"{base_url.rstrip('/')}/track/{token}"
