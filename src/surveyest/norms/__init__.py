"""Versioned normative price tables and coefficient sets."""

from .registry import NormRegistry, RegistryHandle

__all__ = ["NormRegistry", "RegistryHandle"]
