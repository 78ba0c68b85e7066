"""Dataclass records shared across the pipeline."""
