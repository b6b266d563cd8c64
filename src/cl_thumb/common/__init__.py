"""Geometry, options and errors shared across cl_thumb."""
