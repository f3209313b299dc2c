# Unified Storage Test Suite
"""
Test suite for the unified storage backends.

Vendor clients are replaced by in-memory fakes (see conftest.py), so the
suite needs no network access or credentials.
"""
