"""Shared test helpers.

Fixtures themselves live in conftest.py files; this package holds the
in-memory control-plane doubles they return.
"""
