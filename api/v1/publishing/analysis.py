"""
Story analyzers: best-effort quality scoring attached to published content.

Supports two backends: stub (deterministic, no network) and openai.
"""

import os
import re
from dataclasses import dataclass

from api.config.logging import get_logger

logger = get_logger(__name__)

_RATING_PATTERN = re.compile(r"Rating:\s*(\d{1,3})", re.IGNORECASE)
_FEEDBACK_PREFIX = re.compile(r"^\s*Feedback:\s*", re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"[.!?]+")

ANALYSIS_PROMPT = """
Rate the following travel story on three aspects:
1. Clarity
2. Emotional expression
3. Language quality

Finish with an overall score (0-100) and short, helpful feedback.

Answer in this format:

Rating: [number from 0-100]
Feedback:
[text]
""".strip()


@dataclass(frozen=True)
class StoryInsights:
    rating: int | None
    insights: str


def parse_insights(content: str) -> StoryInsights:
    """Extract ``Rating: N`` and the feedback text from a model answer."""
    match = _RATING_PATTERN.search(content)
    rating = min(100, max(0, int(match.group(1)))) if match else 0

    feedback = _RATING_PATTERN.sub("", content, count=1)
    feedback = _FEEDBACK_PREFIX.sub("", feedback.strip()).strip()

    return StoryInsights(rating=rating, insights=feedback or "No further notes.")


class StubStoryAnalyzer:
    """
    Deterministic analyzer for development and testing.

    Scores on length and sentence rhythm only; never calls out.
    """

    async def analyze(self, text: str) -> StoryInsights:
        if not text.strip():
            return StoryInsights(rating=0, insights="No text provided.")

        words = text.split()
        sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
        avg_len = len(words) / max(1, len(sentences))

        # Favour stories of a few hundred words with mid-length sentences
        length_score = min(60, len(words) // 5)
        rhythm_score = 40 - min(40, int(abs(avg_len - 15) * 2))
        rating = max(0, min(100, length_score + rhythm_score))

        return StoryInsights(
            rating=rating,
            insights=(
                f"{len(words)} words across {len(sentences)} sentences "
                f"(avg {avg_len:.1f} words per sentence)."
            ),
        )


class OpenAIStoryAnalyzer:
    """
    Chat-completion based analyzer.

    The client is created lazily so the service starts without the openai
    package or an API key; a missing key surfaces as an analysis failure,
    which the publishing worker replaces with a placeholder note.
    """

    def __init__(self, model: str = "gpt-4o-mini"):
        self._client = None
        self.model = model

    def _get_client(self):
        """Lazy load the async OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI

                api_key = os.environ.get("OPENAI_API_KEY")
                if not api_key:
                    raise ValueError(
                        "OPENAI_API_KEY environment variable required "
                        "for the OpenAI story analyzer"
                    )
                self._client = AsyncOpenAI(api_key=api_key)
            except ImportError as e:
                raise RuntimeError(
                    "openai package not installed. Run: pip install 'studio-jobs[llm]'"
                ) from e
        return self._client

    async def analyze(self, text: str) -> StoryInsights:
        if not text.strip():
            return StoryInsights(rating=0, insights="No text provided.")

        client = self._get_client()
        response = await client.chat.completions.create(
            model=self.model,
            temperature=0.3,
            max_tokens=500,
            messages=[
                {
                    "role": "system",
                    "content": "You are a professional story editor for travel blogs.",
                },
                {"role": "user", "content": f"{ANALYSIS_PROMPT}\n\n{text}"},
            ],
        )
        content = (response.choices[0].message.content or "").strip()
        return parse_insights(content)
