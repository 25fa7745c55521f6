"""Prepayment collection invoice reconciliation (extract + replay)."""

__version__ = "0.1.0"
