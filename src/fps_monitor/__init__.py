"""Serve MSI Afterburner shared-memory telemetry as JSON over HTTP."""
