"""
Analytics Use Cases
"""

from .get_analytics_summary_use_case import GetAnalyticsSummaryUseCase

__all__ = ["GetAnalyticsSummaryUseCase"]
