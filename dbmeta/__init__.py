"""Cross-engine catalog introspection and describe reports."""

__version__ = "0.1.0"
