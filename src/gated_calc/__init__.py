"""Gated Calc - a permission- and quota-gated console calculator."""

__version__ = "0.1.0"
