"""relflow: git release workflow automation."""

__version__ = "0.3.0"
