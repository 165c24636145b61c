"""Gemini-backed analysis collaborator.

Two independent calls against the ``generateContent`` REST endpoint:
a JSON-constrained buying-advantage score and a free-text market commentary.
"""

import json
import logging
from datetime import date

import httpx

from krw_rate_dashboard.config import Settings
from krw_rate_dashboard.errors import AnalysisUnavailable
from krw_rate_dashboard.models import CurrencyPair


logger = logging.getLogger(__name__)


SCORE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "advantagePercentage": {
            "type": "NUMBER",
            "description": "The advantage percentage of buying dollars now (0-100).",
        },
        "reason": {
            "type": "STRING",
            "description": "A concise reason for the analysis.",
        },
    },
    "required": ["advantagePercentage", "reason"],
}


def build_score_prompt(pair: CurrencyPair, rates: list[float], current_rate: float) -> str:
    rate_list = ", ".join(f"{r:.2f}" for r in rates)
    return (
        f"당신은 금융 분석가입니다. 최근 {len(rates)}일간의 {pair} 환율 데이터는 다음과 같습니다: "
        f"{rate_list}.\n"
        f"현재 환율은 {current_rate:.2f} {pair.quote} 입니다.\n\n"
        f"이 데이터를 바탕으로, 지금 {pair.base}를 매수하는 것이 얼마나 유리한지 "
        "0에서 100 사이의 백분율 수치로 알려주세요.\n"
        "100에 가까울수록 매수하기 매우 유리함을 의미하고, 0에 가까울수록 매우 불리함을 의미합니다.\n"
        "그리고 그 이유를 한 문장으로 간결하게 설명해주세요.\n\n"
        "결과는 반드시 지정된 JSON 형식으로 제공해주세요."
    )


def build_narrative_prompt(
    pair: CurrencyPair, points: list[tuple[date, float]], current_rate: float
) -> str:
    lines = "\n".join(f"{d.month}/{d.day}: {r:.2f}" for d, r in points)
    return (
        f"다음은 최근 {len(points)}일간의 {pair} 환율 데이터입니다:\n"
        f"{lines}\n\n"
        f"현재 환율은 {current_rate:.2f} {pair.quote} 입니다.\n\n"
        "이 데이터를 바탕으로 최근 환율 변동의 주요 원인을 전문가의 관점에서 분석해주세요.\n"
        "분석에는 다음과 같은 내용을 포함해주세요:\n"
        "1. 전반적인 환율 추세 (상승, 하락, 보합)\n"
        "2. 이러한 변동에 영향을 미쳤을 가능성이 있는 경제적, 정치적 요인\n"
        "3. 향후 환율에 대한 간략한 전망\n\n"
        "결과는 마크다운 형식으로 자연스럽게 서술해주세요."
    )


class GeminiAnalyst:
    """Calls the Gemini API for rate commentary."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.settings.validate_analysis()
        self.pair = CurrencyPair(self.settings.base_currency, self.settings.quote_currency)
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.gemini_url, timeout=60.0
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GeminiAnalyst":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def _generate(self, prompt: str, generation_config: dict | None = None) -> str:
        """Make a generateContent request and return the concatenated text."""
        body: dict = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            body["generationConfig"] = generation_config

        try:
            response = await self.client.post(
                f"/models/{self.settings.gemini_model}:generateContent",
                json=body,
                headers={"x-goog-api-key": self.settings.gemini_api_key},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise AnalysisUnavailable(
                f"Gemini returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise AnalysisUnavailable(f"Gemini unreachable: {e!r}") from e
        except ValueError as e:
            raise AnalysisUnavailable("Gemini returned invalid JSON") from e

        # Check for API errors
        if isinstance(data, dict) and "error" in data:
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise AnalysisUnavailable(f"Gemini error: {message}")

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisUnavailable("Gemini response has no candidates") from e

        return "".join(part.get("text", "") for part in parts)

    async def score(self, rates: list[float], current_rate: float) -> tuple[float, str]:
        """Return the raw advantage score and reason; clamping is left to the caller."""
        text = await self._generate(
            build_score_prompt(self.pair, rates, current_rate),
            {"responseMimeType": "application/json", "responseSchema": SCORE_SCHEMA},
        )
        try:
            parsed = json.loads(text)
            return float(parsed["advantagePercentage"]), str(parsed["reason"])
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Unparseable score payload: {text[:200]!r}")
            raise AnalysisUnavailable("Gemini score payload was not the expected JSON") from e

    async def narrate(self, points: list[tuple[date, float]], current_rate: float) -> str:
        """Return markdown commentary on the recent movement."""
        return await self._generate(build_narrative_prompt(self.pair, points, current_rate))
