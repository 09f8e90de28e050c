"""
Research agents: aggregation, report synthesis and the conversation flow.
"""

from .aggregator import AggregatedState, TokenAggregator, blend_sentiment, classify_input
from .json_extraction import extract_json
from .llm_client import LiteLLMClient, LLMClient
from .research_bot import ResearchBot
from .session_store import InMemorySessionStore, SessionStore
from .synthesizer import ReportSynthesizer

__all__ = [
    "AggregatedState",
    "TokenAggregator",
    "blend_sentiment",
    "classify_input",
    "extract_json",
    "LLMClient",
    "LiteLLMClient",
    "ResearchBot",
    "ReportSynthesizer",
    "SessionStore",
    "InMemorySessionStore",
]
