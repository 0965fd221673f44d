"""Service layer: upstream client, sync engine, webhook ingestion, metrics."""
