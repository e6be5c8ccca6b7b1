"""Domain contracts independent of persistence."""
