"""Shared fixtures for BDD feature tests.

Console capture and fake AWS clients come from ``tests/conftest.py``; the
step modules keep their scenario state in per-feature context fixtures.
"""
