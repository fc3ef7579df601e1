"""Node-graph editor backend: graph model, execution engine and image generation."""

__version__ = "0.1.0"
