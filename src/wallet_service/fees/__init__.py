"""Withdrawal fee calculation."""

from .calculator import FeeQuote, PackageTerms, calculate_fee, quote_withdrawal

__all__ = ["FeeQuote", "PackageTerms", "calculate_fee", "quote_withdrawal"]
