"""
FastAPI REST API Layer for cadence.

This package defines all HTTP endpoints:
    - routes.py: Speech endpoints, /health and /metrics
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
