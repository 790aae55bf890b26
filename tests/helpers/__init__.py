"""Shared helpers for the projconf test suite."""
