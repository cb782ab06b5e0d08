"""Flash-to-bang distance estimation with map framing."""

__version__ = "0.1.0"
