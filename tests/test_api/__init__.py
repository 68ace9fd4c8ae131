"""
Test API Package
Tests for the FastAPI routers
"""
