"""Watch tracking for curriculum and explore videos."""
