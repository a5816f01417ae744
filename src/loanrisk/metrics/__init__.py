"""Portfolio metrics."""

from .portfolio import PortfolioAggregator, PortfolioSummary

__all__ = ["PortfolioAggregator", "PortfolioSummary"]
