"""Multi-source earthquake ingestion: fetch, deduplicate, store once, alert."""
