"""Test Fixtures Package

Provides reusable test fixtures for all test modules.

Fixtures:
- coach_fakes: FakeClock and in-memory collaborators for the orchestrator
- test_database: in-memory SQLite database with the coach schema
"""
