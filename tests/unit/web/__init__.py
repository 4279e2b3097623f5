"""Unit tests for the Operational Truth web layer.

Testing pattern:
    - Use FastAPI's TestClient for route testing
    - Override get_registry with an in-memory store
    - Test request/response validation and error mapping
"""
