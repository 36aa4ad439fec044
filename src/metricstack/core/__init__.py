"""
Core business logic components.

This package contains the ingestion pipeline components:
- Obfuscation codec
- Admission limiter and bucket sweeper
- Schema validation and enrichment
- Document store
- Metrics collection and health checks
"""
