"""Drill store and orchestrator."""
