"""Narrative text for a fitted month, for UI cards and reports.

The narrative step receives a plain RegressionOutput plus an explicitly
passed narrator handle.  No narrator (or a failing one) means the
deterministic template below.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple

from models import Coefficient, Direction, RegressionOutput

log = logging.getLogger("pipeline.narrative")

MAX_PARAGRAPH_CHARS = 600


class NarrativeGenerator(Protocol):
    def interpret(
        self,
        output: RegressionOutput,
        average_sentiment: float,
        period_label: str,
        entry_count: int,
    ) -> str:
        ...


def sentiment_label(score: float) -> str:
    if score > 0.2:
        return "positive"
    if score > 0.05:
        return "slightly positive"
    if score > -0.05:
        return "neutral"
    if score > -0.2:
        return "slightly negative"
    return "negative"


def _clip(s: str, limit: int = MAX_PARAGRAPH_CHARS) -> str:
    s = s.replace("\n", " ").strip()
    if len(s) <= limit:
        return s
    return s[: limit - 3].rstrip() + "..."


def strongest(output: RegressionOutput, direction: Direction) -> Optional[Coefficient]:
    """Largest positive or most negative coefficient in ``direction``."""
    matches = [c for c in output.coefficients if c.direction == direction]
    if not matches:
        return None
    if direction == Direction.NEGATIVE:
        return min(matches, key=lambda c: c.coefficient)
    return max(matches, key=lambda c: c.coefficient)


def template_narrative(
    output: RegressionOutput,
    average_sentiment: float,
    period_label: str,
    entry_count: int,
) -> str:
    """Deterministic three-paragraph summary of a fitted month."""
    paragraphs = []

    paragraphs.append(
        f"Here's your {period_label} analysis. Your sentiment averaged "
        f"{average_sentiment:.2f} ({sentiment_label(average_sentiment)}) across "
        f"{entry_count} journal entries, and your habits explain "
        f"{output.r_squared * 100:.0f}% of the day-to-day variation in mood."
    )

    fm = strongest(output, Direction.POSITIVE)
    det = strongest(output, Direction.NEGATIVE)
    drivers = ""
    if fm is not None:
        drivers += (
            f"{fm.label} was your force multiplier with a coefficient of "
            f"{fm.coefficient:+.3f} (p={fm.p_value:.3f}): days you completed it "
            f"tended to have noticeably higher mood scores. "
        )
    if det is not None:
        drivers += (
            f"On the flip side, {det.label} showed a negative association "
            f"({det.coefficient:+.3f}), worth examining."
        )
    if not drivers:
        drivers = (
            "No single habit dominated as a wellbeing driver this period. "
            "Consistency across your routines is likely maintaining a stable baseline."
        )
    paragraphs.append(drivers.strip())

    if fm is not None:
        paragraphs.append(
            f"Prioritize {fm.label}: it was completed on {fm.baseline * 100:.0f}% "
            f"of logged days, and doing it more often could lift your baseline."
        )
    else:
        paragraphs.append("Keep logging daily; associations sharpen with every additional day.")

    return "\n\n".join(_clip(p) for p in paragraphs)


def build_prompt(
    output: RegressionOutput,
    average_sentiment: float,
    period_label: str,
    entry_count: int,
) -> str:
    lines = [
        f"Monthly habit/mood regression for {period_label}.",
        f"Journal entries: {entry_count}. Average sentiment: {average_sentiment:.3f} (scale -1..1).",
        f"R² = {output.r_squared:.3f}, intercept = {output.intercept:.3f}, "
        f"{output.n_observations} days.",
        "",
        "Coefficients (name | kind | coefficient | p-value | baseline | direction):",
    ]
    for c in sorted(output.coefficients, key=lambda c: c.coefficient, reverse=True):
        lines.append(
            f"  {c.label} | {c.kind.value} | {c.coefficient:+.3f} | {c.p_value:.3f} | "
            f"{c.baseline:.2f} | {c.direction.value}"
        )
    lines += [
        "",
        "Write 2-3 short paragraphs for the user. Associations only, not causes.",
        "Name the strongest positive habit, mention any negative one, and treat",
        "p-values above 0.1 as weak evidence. No markdown, no bullet lists.",
    ]
    return "\n".join(lines)


class LLMNarrator:
    """NarrativeGenerator backed by a CrewAI LLM (Gemini by default)."""

    def __init__(self, model: str, api_key: Optional[str] = None, temperature: float = 0.3):
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self._llm = None

    def _get_llm(self):
        if self._llm is None:
            from crewai import LLM

            self._llm = LLM(model=self.model, api_key=self.api_key, temperature=self.temperature)
        return self._llm

    def interpret(
        self,
        output: RegressionOutput,
        average_sentiment: float,
        period_label: str,
        entry_count: int,
    ) -> str:
        prompt = build_prompt(output, average_sentiment, period_label, entry_count)
        text = self._get_llm().call(prompt)
        return str(text or "").strip()


def generate_narrative(
    output: RegressionOutput,
    average_sentiment: float,
    period_label: str,
    entry_count: int,
    narrator: Optional[NarrativeGenerator] = None,
) -> Tuple[str, str]:
    """Return ``(summary, source)`` where source is llm / template / template_fallback."""
    if narrator is None:
        return template_narrative(output, average_sentiment, period_label, entry_count), "template"

    try:
        text = narrator.interpret(output, average_sentiment, period_label, entry_count)
    except Exception as e:
        log.warning("Narrator failed; using template (%s)", e)
        text = ""
    if text:
        return text, "llm"
    return template_narrative(output, average_sentiment, period_label, entry_count), "template_fallback"
