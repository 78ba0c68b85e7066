"""External collaborators (distance, geocoding, narrative) and clock helpers."""
