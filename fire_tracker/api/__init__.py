"""HTTP read layer."""
