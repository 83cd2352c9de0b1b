"""Logging and telemetry wiring."""
