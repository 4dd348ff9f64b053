"""HTTP route modules for enrichment_service."""
