"""gifview: connector sync and AI post enrichment."""
