"""
MedTracker Test Suite
=====================

Test Structure:
- test_api/: API endpoint tests for FastAPI routes
- test_services/: Service layer tests against an in-memory database
- test_tools/: Pure helpers (dose status, adherence chart, API client)
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run specific test module
    pytest tests/test_api/

    # Run only marked tests
    pytest -m "unit"
    pytest -m "api"
"""

# Test configuration
TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_PASSWORD = "secret123"

__all__ = [
    "TEST_DATABASE_URL",
    "TEST_PASSWORD",
]
