"""Itinerary optimizer pipeline modules."""
