"""Earning intake from upstream reward systems."""

from .models import EarningEvent

__all__ = ["EarningEvent"]
