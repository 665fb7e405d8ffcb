"""Geospatial helpers and locality resolution."""
