"""Simulated vital signs for the foot-care monitor.

This package contains the simulated telemetry stream, its domain models and
the storage collaborators it persists samples through.
"""
