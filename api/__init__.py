"""Intake Workflow HTTP API."""
