"""Per-polygon counts, densities and external attributes."""
