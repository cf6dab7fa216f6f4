"""Read, structurally edit and rewrite Caddyfiles."""

__version__ = "0.4.0"
