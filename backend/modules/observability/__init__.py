"""Structured logging and optimisation metrics."""
