"""AIAnalysisEngine: Question-driven value synthesis with a generative model.

Pipeline:
    1. Discover candidate APIs for the question (APIDiscovery)
    2. Best-effort numeric fetch from the top APIs; failures are skipped
    3. Prompt a text-generation model with the question and collected data
    4. Parse "value: <number>" from the reply; on any failure fall back to the
       median of the collected data points (0 if none)

analyze_question() never raises: every failure degrades to a best-effort
numeric result whose reasoning explains the fallback.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from statistics import mean, median
from typing import Protocol

import httpx

from .APIDiscovery import APIDiscovery, DiscoveredAPI
from .Feed import SYMBOL_PATTERN
from .fetchers.coingecko import coin_id_for
from .http_client import get_shared_client
from .PriceAggregator import (
    DEFAULT_CONFIDENCE,
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    coefficient_of_variation,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "meta-llama/Meta-Llama-3-8B-Instruct"
HF_INFERENCE_URL = "https://router.huggingface.co/hf-inference/models"
MAX_APIS_QUERIED = 5
MAX_REASONING_CHARS = 500
VALUE_PATTERN = re.compile(r"value[:\s]+([\d.]+)", re.IGNORECASE)


class InferenceError(Exception):
    """Raised when the text-generation backend fails or replies unusably."""

    pass


class TextGenerator(Protocol):
    """Anything that turns a prompt into generated text."""

    model_id: str

    async def generate(self, prompt: str) -> str:
        ...


class HuggingFaceTextGenerator:
    """Text generation through the Hugging Face inference API.

    :ivar model_id: Hugging Face model repository ID.
    :ivar api_token: Hugging Face API token.
    :ivar timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        api_token: str,
        model_id: str = DEFAULT_MODEL,
        base_url: str = HF_INFERENCE_URL,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_token = api_token
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def generate(self, prompt: str) -> str:
        """Generate a completion for a prompt.

        :param prompt: Prompt text.
        :returns: Generated text (without the prompt).
        :raises InferenceError: On HTTP errors or an unexpected payload.
        """
        client = self._client if self._client is not None else get_shared_client()
        try:
            response = await client.post(
                f"{self.base_url}/{self.model_id}",
                json={
                    "inputs": prompt,
                    "parameters": {
                        "max_new_tokens": 200,
                        "temperature": 0.3,
                        "return_full_text": False,
                    },
                },
                headers={"Authorization": f"Bearer {self.api_token}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise InferenceError(f"Inference request failed: {e}") from e

        if not response.is_success:
            raise InferenceError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
            if isinstance(data, list):
                data = data[0]
            return str(data["generated_text"])
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InferenceError(f"Unexpected inference response: {e}") from e


@dataclass
class AIAnalysisResult:
    """Outcome of analysing one question.

    :ivar value: Synthesised numeric value.
    :ivar confidence: Confidence score (50-95, 70 without data).
    :ivar sources: Names of APIs that yielded a data point.
    :ivar reasoning: Model justification or fallback explanation.
    :ivar model_id: Model used (or configured) for synthesis.
    :ivar data_points: Raw values collected from the APIs.
    :ivar used_fallback: True when the value did not come from the model.
    """

    value: float
    confidence: float
    sources: list[str] = field(default_factory=list)
    reasoning: str = ""
    model_id: str = ""
    data_points: list[float] = field(default_factory=list)
    used_fallback: bool = False


def build_prompt(
    question: str, description: str, data_points: list[float], sources: list[str]
) -> str:
    """Build the natural-language prompt sent to the model."""
    lines = "\n".join(
        f"Source {i + 1} ({name}): {value}"
        for i, (name, value) in enumerate(zip(sources, data_points))
    )
    return (
        "You are an oracle validator analyzing a prediction market question.\n\n"
        f"Question: {question}\n"
        f"Description: {description}\n\n"
        f"Data points from {len(sources)} sources:\n"
        f"{lines}\n\n"
        "Based on the question and available data, provide:\n"
        "1. The most likely numeric value (as a number)\n"
        "2. Brief reasoning (2-3 sentences)\n\n"
        "Format your response as:\n"
        "value: [number]\n"
        "reasoning: [explanation]\n\n"
        "Response:"
    )


def parse_model_value(text: str) -> float | None:
    """Extract the numeric value from a model reply.

    :param text: Generated text.
    :returns: Parsed value, or None if no "value: <number>" was found.
    """
    match = VALUE_PATTERN.search(text)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def analysis_confidence(data_points: list[float], value: float) -> float:
    """Confidence of a synthesised value.

    Base is clamp(100 - CV * 100, 50, 95); +10 if the value is within 10% of
    the raw mean, +5 within 20%; capped at 95. Without data points it is 70.
    """
    if not data_points:
        return DEFAULT_CONFIDENCE

    base = max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, 100.0 - coefficient_of_variation(data_points) * 100.0))
    avg = mean(data_points)
    diff = abs(value - avg) / (avg if avg > 0 else 1.0)
    bonus = 10.0 if diff < 0.1 else 5.0 if diff < 0.2 else 0.0
    return min(MAX_CONFIDENCE, base + bonus)


class AIAnalysisEngine:
    """Synthesises a value for free-text questions.

    :ivar discovery: API discovery service.
    :ivar generator: Text generator, or None when no model is configured.
    :ivar enable_discovery: Whether API discovery runs at all.
    """

    def __init__(
        self,
        discovery: APIDiscovery,
        generator: TextGenerator | None = None,
        enable_discovery: bool = True,
        model_id: str = DEFAULT_MODEL,
        fetch_timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.discovery = discovery
        self.generator = generator
        self.enable_discovery = enable_discovery
        self.model_id = generator.model_id if generator is not None else model_id
        self.fetch_timeout = fetch_timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client if self._client is not None else get_shared_client()

    async def analyze_question(
        self, question: str, description: str, category: str
    ) -> AIAnalysisResult:
        """Analyse a question and synthesise a numeric answer.

        :param question: Feed name / market question.
        :param description: Feed description.
        :param category: Feed category name.
        :returns: AIAnalysisResult; never raises.
        """
        data_points: list[float] = []
        sources: list[str] = []
        try:
            logger.info(f"Analyzing question: {question}")

            apis = (
                await self.discovery.discover_apis(question, category)
                if self.enable_discovery
                else []
            )
            logger.info(f"Discovered {len(apis)} APIs")

            for api in apis[:MAX_APIS_QUERIED]:
                try:
                    value = await self.fetch_from_api(api, question)
                except Exception as e:
                    logger.warning(f"Failed to fetch from {api.name}: {e}")
                    continue
                if value is not None:
                    data_points.append(value)
                    sources.append(api.name)

            value, reasoning, used_fallback = await self._synthesize(
                question, description, data_points, sources
            )
        except Exception as e:
            logger.error(f"AI analysis error: {e}")
            value = median(data_points) if data_points else 0.0
            reasoning = (
                f"Fallback: Used median of {len(data_points)} data points "
                f"due to analysis error: {e}"
            )
            used_fallback = True

        return AIAnalysisResult(
            value=value,
            confidence=analysis_confidence(data_points, value),
            sources=sources,
            reasoning=reasoning[:MAX_REASONING_CHARS],
            model_id=self.model_id,
            data_points=data_points,
            used_fallback=used_fallback,
        )

    async def _synthesize(
        self,
        question: str,
        description: str,
        data_points: list[float],
        sources: list[str],
    ) -> tuple[float, str, bool]:
        """Ask the model for a value, falling back to the data median.

        :returns: Tuple of (value, reasoning, used_fallback).
        """
        fallback_value = median(data_points) if data_points else 0.0

        if self.generator is None:
            return (
                fallback_value,
                f"Fallback: Used median of {len(data_points)} data points "
                "because no inference model is configured",
                True,
            )

        try:
            text = await self.generator.generate(
                build_prompt(question, description, data_points, sources)
            )
        except InferenceError as e:
            logger.error(f"Inference error: {e}")
            return (
                fallback_value,
                f"Fallback: Used median of {len(data_points)} data points "
                "due to AI inference error",
                True,
            )

        parsed = parse_model_value(text)
        if parsed is None:
            logger.warning(f"Could not parse a value from model reply: {text[:100]!r}")
            return (
                fallback_value,
                f"Fallback: Used median of {len(data_points)} data points "
                f"because the model reply had no value. Model said: {text}",
                True,
            )
        return parsed, text, False

    async def fetch_from_api(self, api: DiscoveredAPI, question: str) -> float | None:
        """Best-effort numeric fetch from a discovered API.

        Only price-type APIs are understood: an asset ticker is extracted from
        the question and priced in USD via CoinGecko or Binance.

        :param api: Discovered API.
        :param question: Question the value should answer.
        :returns: Value, or None if the API is not understood or returned nothing.
        """
        if api.category != "crypto" or not api.url:
            return None

        match = SYMBOL_PATTERN.search(question)
        if not match:
            return None
        ticker = match.group(1).upper()

        if "coingecko" in api.url:
            coin_id = coin_id_for(ticker)
            response = await self.client.get(
                f"{api.url}/simple/price",
                params={"ids": coin_id, "vs_currencies": "usd"},
                timeout=self.fetch_timeout,
            )
            response.raise_for_status()
            price = response.json().get(coin_id, {}).get("usd")
            return float(price) if price is not None else None

        if "binance" in api.url:
            response = await self.client.get(
                f"{api.url}/ticker/price",
                params={"symbol": f"{ticker}USDT"},
                timeout=self.fetch_timeout,
            )
            response.raise_for_status()
            price = response.json().get("price")
            return float(price) if price is not None else None

        return None
