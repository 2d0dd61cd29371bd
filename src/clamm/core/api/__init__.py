"""Observability surfaces for the engine."""
