"""Tabular rendering of result sets."""

from .encoder import RenderOptions, TableEncoder, encode_all

__all__ = ["RenderOptions", "TableEncoder", "encode_all"]
