from __future__ import annotations

"""Social Sentiment Toolkit
==========================

An Agno-compatible toolkit that estimates community sentiment for a token from
X (Twitter) v2 recent search.

## Flow

1. Resolve name, symbol and the X handle (from DexScreener social links when
   an address is given, otherwise by searching "<term> official account")
2. Search ``from:<handle>`` then the symbol (or name), 20 tweets per query,
   pausing between queries and stopping once more than 30 tweets are
   collected or the API starts throttling
3. Score engagement: ``clamp((avg_likes/10 + avg_retweets/5)/2 - 0.5, -1, 1)``

When the search is unavailable (no bearer token, throttled, nothing found) a
deterministic estimate seeded by the token name is returned instead, marked
``source: "generated"`` so it is never mistaken for measured data.

## Environment Variables

- `TWITTER_BEARER_TOKEN`: X API v2 app bearer token
"""

import asyncio
import os
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from agno.tools import Toolkit
from loguru import logger

from ...exceptions import MissingConfigurationError
from ..base import BaseAPIToolkit, BaseDataToolkit
from ..utils import DataValidator, RetryPolicy
from ..utils.data_validator import TweetSearchResponse
from ..utils.retry import is_rate_limit_error
from .dexscreener_toolkit import DexScreenerToolkit

__all__ = ["SocialSentimentToolkit", "engagement_score"]

TWITTER_ENDPOINT = "twitter"
TWITTER_BASE_URL = "https://api.twitter.com"
SEARCH_PATH = "/2/tweets/search/recent"

TWEET_SOFT_CAP = 30
TWEETS_PER_QUERY = 20
HANDLE_SEARCH_RESULTS = 10
RECENT_TWEETS_SHOWN = 5


def _clean(value: Any) -> str:
    if not value:
        return ""
    return str(value).replace("\x00", "").strip()


def engagement_score(average_likes: float, average_retweets: float) -> float:
    """Engagement heuristic in [-1, 1]; no text analysis is involved."""
    raw = (average_likes / 10 + average_retweets / 5) / 2
    return min(max(raw - 0.5, -1.0), 1.0)


class SocialSentimentToolkit(Toolkit, BaseDataToolkit, BaseAPIToolkit):
    """Social Sentiment Toolkit

    Wraps X recent search with handle discovery, query throttling and a
    labeled synthetic fallback. Token addresses are resolved to name, symbol
    and social links through the market toolkit.
    """

    _toolkit_category = "social"
    _toolkit_type = "sentiment"
    _toolkit_icon = "💬"

    def __init__(
        self,
        bearer_token: str | None = None,
        market_toolkit: Optional[DexScreenerToolkit] = None,
        retry_policy: Optional[RetryPolicy] = None,
        query_pacing_seconds: float = 1.0,
        tweet_soft_cap: int = TWEET_SOFT_CAP,
        data_dir: str | Path = "./data/social",
        http_client: Optional[Any] = None,
        http_timeout: float = 15.0,
        name: str = "social_sentiment_toolkit",
        **kwargs: Any,
    ):
        """Initialize the Social Sentiment Toolkit.

        Args:
            bearer_token: X API bearer token. If None, reads TWITTER_BEARER_TOKEN.
                Without it every analysis returns the generated estimate.
            market_toolkit: Toolkit used to resolve addresses (created if None)
            retry_policy: Backoff per search request (default: twitter preset)
            query_pacing_seconds: Pause between consecutive search queries
            tweet_soft_cap: Stop issuing queries once more tweets than this are collected
            data_dir: Directory for snapshots
            http_client: Shared DataHTTPClient
            http_timeout: HTTP request timeout in seconds
            name: Name identifier for this toolkit instance
            **kwargs: Additional arguments passed to Toolkit
        """
        self.bearer_token = bearer_token or os.getenv("TWITTER_BEARER_TOKEN")
        self.query_pacing_seconds = query_pacing_seconds
        self.tweet_soft_cap = tweet_soft_cap
        self._policy = retry_policy or RetryPolicy.preset("twitter")

        self._init_standard_configuration(http_timeout=http_timeout, http_client=http_client)
        self.market_toolkit = market_toolkit or DexScreenerToolkit(http_client=self._http_client)

        available_tools = [
            self.analyze_social_sentiment,
            self.analyze_twitter_sentiment,
        ]

        super().__init__(name=name, tools=available_tools, **kwargs)

        self._init_data_helpers(data_dir, toolkit_name="social_sentiment", source_tag="social")

        if not self.bearer_token:
            logger.warning("TWITTER_BEARER_TOKEN not set; social sentiment will use generated estimates")

    # =========================================================================
    # X search
    # =========================================================================

    async def _search(self, query: str, max_results: int, with_users: bool = False) -> TweetSearchResponse:
        if not self.bearer_token:
            raise MissingConfigurationError("TWITTER_BEARER_TOKEN")

        if TWITTER_ENDPOINT not in self._http_client.get_endpoints():
            await self._http_client.add_endpoint(
                TWITTER_ENDPOINT,
                TWITTER_BASE_URL,
                headers={"Authorization": f"Bearer {self.bearer_token}"},
            )

        params = {
            "query": query,
            # The endpoint accepts 10..100
            "max_results": min(max(max_results, 10), 100),
            "tweet.fields": "created_at,public_metrics",
        }
        if with_users:
            params["expansions"] = "author_id"
            params["user.fields"] = "verified,description,username"

        raw = await self._http_client.get(TWITTER_ENDPOINT, SEARCH_PATH, params=params, policy=self._policy)
        return DataValidator.parse(TweetSearchResponse, raw, "x recent search")

    @staticmethod
    def extract_twitter_handle(socials: Optional[List[Dict[str, Any]]]) -> Optional[str]:
        """Pull an X handle out of DexScreener social links.

        Args:
            socials: ``[{"type": "twitter", "url": "https://x.com/handle"}, ...]``

        Returns:
            The handle without query string or fragment, or None
        """
        if not isinstance(socials, list):
            return None

        twitter = next((s for s in socials if isinstance(s, dict) and s.get("type") == "twitter"), None)
        url = (twitter or {}).get("url") or ""
        if "twitter.com/" not in url and "x.com/" not in url:
            return None

        handle = url.rstrip("/").split("/")[-1].split("?")[0].split("#")[0].strip()
        return handle or None

    async def find_twitter_handle(self, term: str) -> Optional[str]:
        """Guess the project's X account from a name or symbol.

        Preference order: a verified account, then one whose username or bio
        mentions the term, then the first account returned.

        Args:
            term: Token symbol or project name

        Returns:
            The username, or None when nothing was found or the search failed
        """
        term = _clean(term)
        if not term or not self.bearer_token:
            return None

        try:
            response = await self._search(f"{term} official account", HANDLE_SEARCH_RESULTS, with_users=True)
        except Exception as e:
            if is_rate_limit_error(e):
                logger.warning(f"X handle lookup for '{term}' rate limited")
            else:
                logger.warning(f"X handle lookup for '{term}' failed: {e}")
            return None

        users = response.includes.users
        if not users:
            return None

        verified = [u for u in users if u.verified]
        if verified:
            return verified[0].username

        needle = term.lower()
        for user in users:
            if needle in user.username.lower() or needle in user.description.lower():
                return user.username

        return users[0].username

    async def analyze_twitter_sentiment(
        self,
        token_name: str,
        token_symbol: str,
        twitter_handle: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Measure X engagement around a token.

        Args:
            token_name: Token or project name
            token_symbol: Token symbol (preferred search term)
            twitter_handle: Known handle; looked up when None

        Returns:
            dict: Envelope with total_tweets, average_likes, average_retweets,
            twitter_handle, recent_tweets and sentiment_score. Fails (with the
            partial payload as data) when no tweets were collected.
        """
        token_name = _clean(token_name)
        token_symbol = _clean(token_symbol)
        search_term = token_symbol or token_name

        if not self.bearer_token:
            return self.response_builder.error_response(
                "TWITTER_BEARER_TOKEN is required for this operation",
                error_type="configuration_error",
            )
        if not search_term:
            return self.response_builder.validation_error_response(
                "token", search_term, ["No valid token symbol or name to search"]
            )

        twitter_handle = _clean(twitter_handle) or await self.find_twitter_handle(search_term)

        queries = [f"from:{twitter_handle}"] if twitter_handle else []
        queries.append(search_term)

        tweets: List[Dict[str, Any]] = []
        for index, query in enumerate(queries):
            if len(tweets) > self.tweet_soft_cap:
                logger.debug(f"Collected {len(tweets)} tweets, skipping remaining queries")
                break
            if index > 0:
                await asyncio.sleep(self.query_pacing_seconds)

            try:
                response = await self._search(query, TWEETS_PER_QUERY)
            except Exception as e:
                if is_rate_limit_error(e):
                    logger.warning(f"X search rate limited on '{query}', stopping")
                    break
                logger.warning(f"X search failed for '{query}': {e}")
                continue

            for tweet in response.data:
                tweets.append({
                    "text": tweet.text,
                    "created_at": tweet.created_at or self.now_iso(),
                    "likes": tweet.public_metrics.like_count,
                    "retweets": tweet.public_metrics.retweet_count,
                })

        total = len(tweets)
        total_likes = sum(t["likes"] for t in tweets)
        total_retweets = sum(t["retweets"] for t in tweets)
        average_likes = total_likes / total if total else 0.0
        average_retweets = total_retweets / total if total else 0.0

        sentiment = {
            "success": total > 0,
            "total_tweets": total,
            "total_likes": total_likes,
            "total_retweets": total_retweets,
            "average_likes": average_likes,
            "average_retweets": average_retweets,
            "twitter_handle": twitter_handle or "Not found",
            "recent_tweets": tweets[:RECENT_TWEETS_SHOWN],
            "sentiment_score": engagement_score(average_likes, average_retweets),
            "last_updated": self.now_iso(),
        }

        if not total:
            return self.response_builder.error_response(
                f"No tweets found for {search_term}",
                error_type="not_found",
                data=sentiment,
            )

        logger.info(f"Collected {total} tweets for {search_term} (score {sentiment['sentiment_score']:.2f})")
        return self.response_builder.success_response(data=sentiment, data_source="twitter")

    # =========================================================================
    # Fallback
    # =========================================================================

    def generate_fallback_sentiment(self, token_name: str, token_symbol: str) -> Dict[str, Any]:
        """Generated sentiment estimate with the same shape on every call.

        Values are drawn from a generator seeded by the token name, so repeated
        requests for the same token agree with each other.
        """
        token_name = _clean(token_name)
        token_symbol = _clean(token_symbol)
        rng = random.Random(token_name or token_symbol or "unknown")

        return {
            "source": "generated",
            "token_info": {
                "name": token_name or "Unknown",
                "symbol": token_symbol or "UNKNOWN",
            },
            "twitter": {
                "estimated_mentions": rng.randint(5, 104),
                "estimated_sentiment": round(rng.uniform(-1, 1), 2),
                "popularity_score": round(rng.uniform(0, 10), 1),
            },
            "community": {
                "estimated_size": rng.randint(100, 10099),
                "estimated_activity": round(rng.uniform(0, 10), 1),
                "estimated_growth": f"{rng.uniform(0, 20):.1f}%",
            },
            "market_sentiment": {
                "bullish_signals": rng.randint(0, 4),
                "bearish_signals": rng.randint(0, 4),
                "neutral_signals": rng.randint(0, 4),
            },
            "overall_sentiment_score": round(rng.uniform(-1, 1), 2),
            "last_updated": self.now_iso(),
        }

    @staticmethod
    def _market_snapshot(market: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "price_usd": market["price_usd"],
            "market_cap": market["market_cap"],
            "liquidity_usd": market["liquidity_usd"],
            "volume_24h": market["volume_24h"],
            "price_change_24h": market["price_change"]["h24"],
        }

    # =========================================================================
    # Entry point
    # =========================================================================

    async def analyze_social_sentiment(self, token: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
        """Social sentiment for a token address, a project name or a token info dict.

        Args:
            token: Mint address, free-text project name, or a dict with
                name/symbol/address (``token_name``/``token_symbol``/``token_mint`` also accepted)

        Returns:
            dict: Envelope whose data has token_info, twitter,
            overall_sentiment_score and, for resolved addresses, market_data
            and links. ``data_source`` is "twitter" or "generated".
        """
        if isinstance(token, dict):
            name = _clean(token.get("name") or token.get("token_name"))
            symbol = _clean(token.get("symbol") or token.get("token_symbol"))
            address = _clean(token.get("address") or token.get("token_mint"))
        elif isinstance(token, str):
            cleaned = _clean(token)
            if DataValidator.is_solana_address(cleaned):
                name, symbol, address = "", "", cleaned
            else:
                name, symbol, address = cleaned, "", ""
        else:
            return self.response_builder.validation_error_response(
                "token", repr(token), ["Invalid token information provided"]
            )

        market: Optional[Dict[str, Any]] = None
        handle: Optional[str] = None
        if address:
            market_result = await self.market_toolkit.get_market_data(address)
            if market_result["success"]:
                market = market_result["data"]
                name = name or _clean(market["token_name"])
                symbol = symbol or _clean(market["token_symbol"])
                handle = self.extract_twitter_handle(market["links"]["socials"])

        if not name and not symbol:
            logger.info(f"No name or symbol for {address or token!r}, using generated sentiment")
            fallback = self.generate_fallback_sentiment(address, address)
            return self.response_builder.success_response(data=fallback, data_source="generated")

        twitter = await self.analyze_twitter_sentiment(name, symbol, handle)

        if not twitter["success"]:
            logger.info(f"X sentiment unavailable for {symbol or name} ({twitter['error']}), using generated estimate")
            result = self.generate_fallback_sentiment(name, symbol)
            result["twitter_error"] = twitter["error"]
            result["token_info"]["address"] = address or None
            if market:
                result["market_data"] = self._market_snapshot(market)
                result["links"] = market["links"]
            return self.response_builder.success_response(
                data=result,
                message="Generated estimate; X search returned no data",
                data_source="generated",
            )

        twitter_data = twitter["data"]
        result = {
            "source": "twitter",
            "token_info": {
                "name": name or "Unknown",
                "symbol": symbol or "UNKNOWN",
                "address": address or "Unknown",
            },
            "twitter": twitter_data,
            "overall_sentiment_score": twitter_data["sentiment_score"],
            "last_updated": self.now_iso(),
        }

        if market:
            result["market_data"] = self._market_snapshot(market)
            result["links"] = market["links"]
            if market.get("buy_sell_ratio") is not None:
                result["market_sentiment"] = {
                    "buy_sell_ratio": market["buy_sell_ratio"],
                    "buys_24h": market["transactions"]["h24"]["buys"],
                    "sells_24h": market["transactions"]["h24"]["sells"],
                }

        return self.response_builder.success_response(data=result, data_source="twitter")

    async def aclose(self):
        """Close all HTTP clients and clean up resources."""
        await self._http_client.aclose()
        logger.debug("Closed SocialSentimentToolkit and all clients")
