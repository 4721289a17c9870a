"""Codec module for the cache client."""

from . import multivalue
from .hints import TypeHint
from .values import decode, serialize

__all__ = [
    "TypeHint",
    "decode",
    "serialize",
    "multivalue",
]
