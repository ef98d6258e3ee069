from .aggregator import MatchAggregator, explain_match
from .matcher import ProductMatcher
from .orchestrator import CandidateSearch, SearchStrategyOrchestrator
from .scorer import Scorer

__all__ = [
    "CandidateSearch",
    "MatchAggregator",
    "ProductMatcher",
    "Scorer",
    "SearchStrategyOrchestrator",
    "explain_match",
]
