"""
Test Tools Package
Tests for the tools module (dose status, adherence chart, API client)
"""
