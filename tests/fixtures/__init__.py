# tests/fixtures/__init__.py
"""Shared schemas for envcast tests."""
