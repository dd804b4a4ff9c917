"""Version information for loss_triangles."""

__version__ = "0.3.0"
