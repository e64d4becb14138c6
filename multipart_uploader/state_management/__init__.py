"""Persisted resume records."""
