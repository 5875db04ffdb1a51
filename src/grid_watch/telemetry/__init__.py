"""Deye Cloud telemetry client."""
