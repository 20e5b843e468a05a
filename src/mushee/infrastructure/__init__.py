"""Infrastructure layer: persistence, storage, integrations and observability."""
