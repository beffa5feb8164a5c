from protean.domain import Domain
from sqlalchemy import create_engine

_RDBMS_PROVIDERS = ("sqlite", "postgresql")


def _rdbms_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in _RDBMS_PROVIDERS:
            yield provider


def setup_db(domain: Domain):
    """Create tables for every aggregate and entity stored in a relational provider.

    The in-memory provider needs no schema, so this is a no-op for the default
    configuration.
    """
    with domain.domain_context():
        for provider in _rdbms_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Touching the DAO registers the model with the provider's metadata
            for registry in (domain.registry.aggregates, domain.registry.entities):
                for _, record in registry.items():
                    if record.cls.meta_.provider == provider.name:
                        domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)


def drop_db(domain: Domain):
    """Drop the tables created by setup_db."""
    with domain.domain_context():
        for provider in _rdbms_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
