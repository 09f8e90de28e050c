"""
Research bot: the conversation flow behind one client session.

1. ``process_initial_query``: aggregate, synthesize, remember the exchange
2. ``process_trading_decision``: simulated purchase on "yes"
3. ``process_followup``: answer against the last exchange
"""

import json
from typing import Any, Dict, List, Optional

from loguru import logger

from .aggregator import AggregatedState, TokenAggregator
from .llm_client import LLMClient
from .prompts import FOLLOWUP_PROMPT
from .synthesizer import ReportSynthesizer

NO_QUERY_MESSAGE = "Please provide an initial query first."
CANCELLED_MESSAGE = "Trading operation cancelled. No purchase was made."
SIMULATED_PURCHASE_MESSAGE = (
    "[SIMULATION] Successfully purchased {name} ({symbol}) tokens. This is a simulated "
    "transaction. In a production environment, this would execute a real token purchase "
    "using a wallet integration."
)
INSUFFICIENT_DATA_REPORT = {
    "error": "Unable to gather sufficient data for analysis",
    "final_recommendation": "Unable to provide recommendation due to insufficient data",
}
FOLLOWUP_CONTEXT_ENTRIES = 2


class ResearchBot:
    """Stateful research assistant for a single session."""

    def __init__(
        self,
        aggregator: TokenAggregator,
        synthesizer: ReportSynthesizer,
        llm_client: LLMClient,
    ):
        self.aggregator = aggregator
        self.synthesizer = synthesizer
        self.llm_client = llm_client

        self.state: Optional[AggregatedState] = None
        self.final_analysis: Optional[Dict[str, Any]] = None
        self.history: List[Dict[str, str]] = []
        self.trading_decision: Optional[str] = None

    def add_to_history(self, role: str, content: str) -> None:
        self.history.append({"role": role, "content": content})

    async def process_initial_query(self, query: str) -> Dict[str, Any]:
        """Research a token address or project name and return the report."""
        logger.info(f"Processing initial query: {query!r}")
        try:
            self.state = await self.aggregator.aggregate(query)

            if self.state.has_sufficient_data():
                report = await self.synthesizer.synthesize(self.state)
            else:
                logger.warning(f"Insufficient data gathered for {query!r}")
                report = dict(INSUFFICIENT_DATA_REPORT)
        except Exception as e:
            logger.exception(f"Initial query failed: {e}")
            report = {
                "error": f"Analysis failed: {e}",
                "final_recommendation": "Analysis failed due to an unexpected error",
            }

        self.final_analysis = report
        self.add_to_history("user", query)
        self.add_to_history("assistant", json.dumps(report, default=str))
        return report

    async def process_trading_decision(self, decision: str) -> str:
        """Answer a yes/no purchase decision. No trade is ever executed."""
        if self.state is None:
            return NO_QUERY_MESSAGE

        self.trading_decision = decision
        if (decision or "").strip().lower() != "yes":
            logger.info("Trading declined")
            return CANCELLED_MESSAGE

        token = self.state.token.data if self.state.token.success and isinstance(self.state.token.data, dict) else {}
        name = token.get("name") or "unknown"
        symbol = token.get("symbol") or "unknown"
        logger.info(f"Simulating purchase of {name} ({symbol})")
        return SIMULATED_PURCHASE_MESSAGE.format(name=name, symbol=symbol)

    async def _answer_followup(self, question: str) -> str:
        if not self.history:
            return NO_QUERY_MESSAGE

        context = "\n".join(
            f"{entry['role']}: {entry['content']}" for entry in self.history[-FOLLOWUP_CONTEXT_ENTRIES:]
        )
        try:
            return await self.llm_client.complete(FOLLOWUP_PROMPT.format(context=context, question=question))
        except Exception as e:
            logger.error(f"Follow-up failed: {e}")
            return f"Error processing follow-up question: {e}"

    async def process_followup(self, question: str) -> str:
        """Answer a question about the previous analysis."""
        logger.info(f"Processing follow-up: {question!r}")
        response = await self._answer_followup(question)
        if self.history:
            self.add_to_history("user", question)
            self.add_to_history("assistant", response)
        return response
