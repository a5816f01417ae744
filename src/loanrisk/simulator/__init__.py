"""Synthetic loan books for testing and demonstrations."""

from .loan_book import LoanBookGenerator, BookProfile

__all__ = ["LoanBookGenerator", "BookProfile"]
