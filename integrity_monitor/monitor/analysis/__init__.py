"""External analysis adapter"""

from .code_reviewer import CodeReviewAnalyzer, AnalysisVerdict, fallback_verdict

__all__ = ["CodeReviewAnalyzer", "AnalysisVerdict", "fallback_verdict"]
