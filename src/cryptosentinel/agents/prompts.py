"""
Prompt templates for the report synthesizer and the research bot.

Templates use ``str.format``; literal braces in the JSON schema are doubled.
"""

ANALYST_SYSTEM_PROMPT = (
    "You are a professional cryptocurrency analyst specializing in Solana tokens. "
    "You answer with concrete, data-driven findings and never invent numbers."
)

INVESTMENT_ANALYSIS_PROMPT = """Provide a detailed, data-driven assessment of this token based on the following information.

TOKEN DATA FOR ANALYSIS:

Token Market Data:
{market_data}

Solana Program Security Analysis:
{contract_analysis}

Token Metrics:
{token_metrics}

On-Chain Metrics Analysis:
{on_chain_data}

Social Sentiment Analysis:
{social_data}

ANALYSIS REQUIREMENTS:

1. SMART CONTRACT RISK ASSESSMENT:
   - Rate security from 0-10 (higher is safer)
   - Specifically analyze: mint authority control, ownership concentration, code quality
   - Highlight any red flags or backdoors
   - For unknown factors, explicitly state what information is missing

2. TOKEN PERFORMANCE ANALYSIS:
   - Rate performance from 0-10 (higher is better)
   - Analyze specific metrics: price movement, liquidity depth, volume
   - Include specific numerical data points, not generic statements

3. ON-CHAIN METRICS EVALUATION:
   - Rate on-chain health from 0-10 (higher is better)
   - Analyze transaction patterns, whale activity, holder distribution
   - Provide specific holder counts, whale percentages, or transaction frequencies
   - Note any suspicious on-chain activities (wash trading, etc.)

4. SOCIAL SENTIMENT EVALUATION:
   - Rate social sentiment from 0-10 (higher is better)
   - Include specific data points about community size or engagement if available
   - Note if sentiment data is limited, unavailable or marked as "generated"

5. OVERALL INVESTMENT ASSESSMENT:
   - Calculate a risk/reward ratio (0-5 scale)
   - Provide a confidence score (0-100%)
   - Deliver a detailed, specific recommendation with timeframe considerations
   - Mention specific catalysts or risk factors unique to this token

6. DO NOT USE GENERIC PHRASES like "The token shows promise" or "Further research is recommended".
   Give concrete insights based on the specific data provided.

OUTPUT FORMAT:
Return your analysis as a JSON object with the following structure:
{{
  "token_info": {{
    "name": "<token name>",
    "symbol": "<token symbol>",
    "price_usd": <price>,
    "market_cap": <market cap>,
    "fdv": <fully diluted valuation>,
    "price_change_24h": <24h price change percent>
  }},
  "smart_contract_risk": {{
    "rating": <0-10>,
    "comment": "<detailed security analysis with specific findings>",
    "key_risks": ["<specific risk 1>", "<specific risk 2>"],
    "error": "<error or null>"
  }},
  "token_performance": {{
    "rating": <0-10>,
    "comment": "<detailed performance analysis with specific metrics>",
    "key_metrics": {{
      "liquidity_rating": <0-10>,
      "volume_rating": <0-10>,
      "price_stability": <0-10>
    }},
    "error": "<error or null>"
  }},
  "on_chain_metrics": {{
    "rating": <0-10>,
    "comment": "<detailed on-chain analysis with specific patterns>",
    "holder_distribution": "<specific insight about token distribution>",
    "transaction_patterns": "<specific insight about transaction activity>",
    "error": "<error or null>"
  }},
  "social_sentiment": {{
    "rating": <0-10>,
    "comment": "<detailed sentiment analysis with specific platforms mentioned>",
    "community_strength": "<specific assessment of community>",
    "error": "<error or null>"
  }},
  "risk_reward_ratio": <0-5>,
  "confidence_score": <0-100>,
  "investment_timeframe": "<short/medium/long-term potential assessment>",
  "specific_catalysts": ["<catalyst 1>", "<catalyst 2>"],
  "specific_concerns": ["<concern 1>", "<concern 2>"],
  "final_recommendation": "<detailed, token-specific recommendation>",
  "timestamp": "<current ISO date>"
}}"""

FOLLOWUP_PROMPT = """Based on this previous analysis:

{context}

Please answer this follow-up question: {question}

Provide a specific answer based on the available information."""

TRADING_PROMPT = "Would you like me to execute a token purchase for you? (yes/no)"
