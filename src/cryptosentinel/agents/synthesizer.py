"""
Report synthesizer.

Turns an ``AggregatedState`` into the investment report the UI renders. The
report always has the full shape: the model's JSON is merged over a default
skeleton, missing facts are backfilled from the gathered data, and any
failure yields the fallback report instead of an exception.
"""

import copy
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from .aggregator import AggregatedState
from .json_extraction import extract_json
from .llm_client import LLMClient
from .prompts import INVESTMENT_ANALYSIS_PROMPT

SECTIONS = ("smart_contract_risk", "token_performance", "on_chain_metrics", "social_sentiment")

# Market payload keys left out of the prompt
PROMPT_EXCLUDED_MARKET_KEYS = ("all_pairs",)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_report() -> Dict[str, Any]:
    """The complete report shape with neutral values."""
    section = {"rating": 0, "comment": "No data available", "details": {}, "error": None}
    return {
        "token_info": {
            "name": None,
            "symbol": None,
            "price_usd": None,
            "market_cap": None,
            "fdv": None,
            "price_change_24h": None,
        },
        **{name: copy.deepcopy(section) for name in SECTIONS},
        "risk_reward_ratio": 0,
        "confidence_score": 0,
        "investment_timeframe": "Unknown",
        "specific_catalysts": [],
        "specific_concerns": [],
        "final_recommendation": "No recommendation available",
        "timestamp": None,
    }


def fallback_report(error: Exception) -> Dict[str, Any]:
    """Report returned when synthesis fails."""
    report = default_report()
    report["error"] = f"Error generating recommendation: {error}"
    report["token_info"] = {
        "name": "Unknown",
        "symbol": "Unknown",
        "price_usd": 0,
        "market_cap": 0,
        "fdv": 0,
        "price_change_24h": 0,
    }
    for name in SECTIONS:
        report[name].update({"rating": 0, "comment": "Analysis failed", "error": str(error)})
    report["final_recommendation"] = "Analysis failed due to an unexpected error. Please try again."
    report["timestamp"] = _now_iso()
    report["market_summary"] = market_summary(report["token_info"])
    report["has_trading_prompt"] = True
    return report


def deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay ``overlay`` onto a copy of ``base``.

    Nested dicts merge and any other value in ``overlay`` replaces the base
    value. A nested default dict is never replaced by a non-dict: a string
    becomes its ``comment`` (when it has one), anything else is dropped.
    """
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        current = result.get(key)
        if isinstance(current, dict):
            if isinstance(value, dict):
                result[key] = deep_merge(current, value)
            elif isinstance(value, str) and "comment" in current:
                current["comment"] = value
            continue
        result[key] = value
    return result


PLACEHOLDERS = (None, "Unknown", "", 0)


def _is_placeholder(value: Any) -> bool:
    return value is None or (not isinstance(value, bool) and value in PLACEHOLDERS)


def market_summary(token_info: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "token_name": token_info.get("name") or "Unknown",
        "token_symbol": token_info.get("symbol") or "Unknown",
        "price_usd": token_info.get("price_usd") or 0,
        "market_cap": token_info.get("market_cap") or 0,
        "fdv": token_info.get("fdv") or 0,
        "price_change_24h": token_info.get("price_change_24h") or 0,
    }


def _prompt_json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


class ReportSynthesizer:
    """Builds the investment report for an aggregated state."""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    def build_prompt(self, state: AggregatedState) -> str:
        market = state.market.model_dump()
        if isinstance(market.get("data"), dict):
            market["data"] = {
                k: v for k, v in market["data"].items() if k not in PROMPT_EXCLUDED_MARKET_KEYS
            }
        return INVESTMENT_ANALYSIS_PROMPT.format(
            market_data=_prompt_json(market),
            contract_analysis=_prompt_json(state.contract.model_dump()),
            token_metrics=_prompt_json(state.token.model_dump()),
            on_chain_data=_prompt_json(state.on_chain.model_dump()),
            social_data=_prompt_json(state.social.model_dump()),
        )

    async def synthesize(self, state: AggregatedState) -> Dict[str, Any]:
        """Produce a structurally complete report. Never raises."""
        try:
            response = await self.llm_client.complete(self.build_prompt(state))
            parsed = extract_json(response)
            if parsed is None:
                raise ValueError("Failed to parse LLM response as JSON")

            report = deep_merge(default_report(), parsed)
            self.backfill(report, state)
            logger.info(f"Synthesized report for {state.identifier}")
            return report
        except Exception as e:
            logger.error(f"Report synthesis failed for {state.identifier}: {e}")
            report = fallback_report(e)
            try:
                self.backfill(report, state)
            except Exception as backfill_error:
                logger.warning(f"Could not backfill fallback report for {state.identifier}: {backfill_error}")
            return report

    @staticmethod
    def backfill(report: Dict[str, Any], state: AggregatedState) -> Dict[str, Any]:
        """Fill report fields the model left empty from gathered data."""
        if not report.get("timestamp"):
            report["timestamp"] = _now_iso()

        token = state.token.data if state.token.success and isinstance(state.token.data, dict) else {}
        token_info = report["token_info"] if isinstance(report.get("token_info"), dict) else {}
        for key in ("name", "symbol", "price_usd", "market_cap", "fdv", "price_change_24h"):
            if _is_placeholder(token_info.get(key)) and not _is_placeholder(token.get(key)):
                token_info[key] = token[key]
        report["token_info"] = token_info

        social = state.social.data if state.social.success and isinstance(state.social.data, dict) else {}
        market = state.market.data if state.market.success and isinstance(state.market.data, dict) else {}
        links = social.get("links") or market.get("links") or {}

        socials: Optional[List[Dict[str, Any]]] = report.get("socials")
        if not socials and links.get("socials"):
            socials = list(links["socials"])

        handle = (social.get("twitter") or {}).get("twitter_handle")
        if handle and handle != "Not found":
            socials = socials or []
            if not any(s.get("type") == "twitter" for s in socials if isinstance(s, dict)):
                socials.append({"type": "twitter", "url": f"https://x.com/{handle}"})

        if socials:
            report["socials"] = socials
        if not report.get("website") and links.get("website"):
            report["website"] = links["website"]

        report["market_summary"] = market_summary(token_info)
        report["has_trading_prompt"] = True
        return report
