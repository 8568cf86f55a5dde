"""Animated 3D dot globe for Qt surfaces."""

__version__ = "0.1.0"
