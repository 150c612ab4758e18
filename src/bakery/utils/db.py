"""Schema management for SQL-backed providers.

The memory provider needs no schema. When the domain is configured with a
``sqlite`` or ``postgresql`` provider, tables for every aggregate, entity and
projection are created through SQLAlchemy before the first request.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

from bakery.domain import logger

_SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in _SQL_PROVIDERS:
            yield provider


def setup_db(domain: Domain) -> None:
    """Create tables for every SQL provider of the domain."""
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Touching ``_dao`` registers the element's table with the provider metadata
            for registry in (domain.registry.aggregates, domain.registry.entities, domain.registry.projections):
                for _, record in registry.items():
                    if record.cls.meta_.provider == provider.name:
                        domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            logger.info("Database schema created", provider=provider.name)


def drop_db(domain: Domain) -> None:
    """Drop tables for every SQL provider of the domain."""
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            logger.info("Database schema dropped", provider=provider.name)
