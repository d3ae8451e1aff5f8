"""Terrain heightfield and river drainage over a planar dual mesh."""

__version__ = "0.1.0"
