"""
Lead Relay Test Package.

Test categories:
- test_config.py: Configuration and environment variable loading
- test_tokens.py: Filter token normalization and payload building
- test_models.py: Request parsing and response serialization
- test_delivery.py: Webhook delivery retry schedule
- test_ingestion.py: Webhook result to lead mapping
- test_auth.py: Bearer token resolution
- test_store.py: Database writes against in-memory SQLite
- test_service.py: Relay orchestration
- test_app.py: HTTP endpoints
- test_cli.py: Command line entry point
- test_logging_utils.py: Structured and human-readable log formatting
"""

__all__ = []
