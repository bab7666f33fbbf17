"""
Flask CLI commands for database setup and folio maintenance.

Commands:
- flask init-db: Create all tables
- flask sync-sequences: Seed folio counters from existing documents
"""

from datetime import date

import click

from servicedesk.database import get_session, create_all
from servicedesk.exceptions import SequenceUnavailable
from servicedesk.models import Quote, ServiceRecord, DocumentKind
from servicedesk.services.sequence_service import get_allocator, sync_sequence_from_folios


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        create_all()
        click.echo(click.style('✅ Tablas creadas.', fg='green'))

    @app.cli.command('sync-sequences')
    @click.option('--owner', 'owner_id', required=True, help='Owner id whose counters are synced')
    @click.option('--year', type=int, default=None, help='Year to sync (default: current year)')
    def sync_sequences(owner_id, year):
        """Raise folio counters above the folios already stored."""
        year = year or date.today().year
        db_session = get_session()
        allocator = get_allocator(db_session, app.config['SEQUENCE_MAX_ATTEMPTS'])

        quote_folios = [row[0] for row in db_session.query(Quote.folio).filter(Quote.owner_id == owner_id)]
        order_folios = [
            row[0] for row in db_session.query(ServiceRecord.order_folio).filter(ServiceRecord.owner_id == owner_id)
        ]

        try:
            last_quote = sync_sequence_from_folios(
                allocator, owner_id, DocumentKind.QUOTE, year, quote_folios,
                prefix=app.config['QUOTE_FOLIO_PREFIX']
            )
            last_order = sync_sequence_from_folios(
                allocator, owner_id, DocumentKind.SERVICE_ORDER, year, order_folios,
                prefix=app.config['SERVICE_ORDER_PREFIX']
            )
        except SequenceUnavailable as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style(f'✅ Folios sincronizados para {owner_id} ({year})', fg='green', bold=True))
        click.echo(f'   Cotizaciones: siguiente {last_quote + 1}')
        click.echo(f'   Órdenes de servicio: siguiente {last_order + 1}')
