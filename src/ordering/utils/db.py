"""Relational schema management for the ordering store.

The memory provider needs no schema. For SQLite and PostgreSQL the orders
and order items tables are created from the models Protean registers.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

_RELATIONAL = ("sqlite", "postgresql")


def _relational_providers(domain: Domain):
    return [provider for _, provider in domain.providers.items() if provider.conn_info["provider"] in _RELATIONAL]


def _register_models(domain: Domain, provider) -> None:
    # A repository's _dao builds the SQLAlchemy model and adds it to the
    # provider's metadata.
    records = list(domain.registry.aggregates.values()) + list(domain.registry.entities.values())
    for record in records:
        if record.cls.meta_.provider == provider.name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain):
    """Create the orders and order items tables if they do not exist."""
    with domain.domain_context():
        for provider in _relational_providers(domain):
            _register_models(domain, provider)
            engine = create_engine(provider.conn_info["database_uri"])
            try:
                provider._metadata.create_all(engine)
            finally:
                engine.dispose()


def drop_db(domain: Domain):
    """Drop the orders and order items tables."""
    with domain.domain_context():
        for provider in _relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            try:
                provider._metadata.drop_all(engine)
            finally:
                engine.dispose()
