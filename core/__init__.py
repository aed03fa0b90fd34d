"""Shared infrastructure for the ride tracking engine."""
