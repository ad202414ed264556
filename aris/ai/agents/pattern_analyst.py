from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from aris.ai.agents.base import BaseAgent
from aris.learning.models import LearnedPattern
from aris.learning.patterns import EmailPair, clamp_confidence

logger = logging.getLogger(__name__)

_MAX_EXAMPLES = 5
_MAX_BODY_CHARS = 500

_SYSTEM_PROMPT = "You are an expert email communication analyst. Analyze email patterns to help users improve their email responses. Return your response as valid JSON only, without any markdown formatting or code blocks."

_LANGUAGE_INSTRUCTIONS = {
  "sl": "All emails are in Slovenian. Analyze Slovenian communication patterns, keywords and response templates, and keep keywords and templates in Slovenian.",
  "en": "All emails are in English. Focus on English communication patterns, keywords and response templates.",
  "mixed": "These emails mix English and Slovenian. Keep patterns separated by language.",
}


@dataclass(frozen=True)
class PatternBatch:
  pairs: list[EmailPair]
  language: str = "mixed"


@dataclass
class PatternAnalysis:
  patterns: list[LearnedPattern] = field(default_factory=list)
  style: dict[str, Any] = field(default_factory=dict)
  tokens_used: int = 0


def _excerpt(text: str) -> str:
  text = (text or "").strip()
  if len(text) <= _MAX_BODY_CHARS:
    return text
  return f"{text[:_MAX_BODY_CHARS]}..."


def build_pattern_prompt(batch: PatternBatch) -> str:
  examples = []
  for index, pair in enumerate(batch.pairs[:_MAX_EXAMPLES], start=1):
    received_body = _excerpt(pair.received.body or pair.received.preview)
    response_body = _excerpt(pair.response.body or pair.response.preview)
    examples.append(f'EMAIL PAIR {index}:\nRECEIVED: "{pair.received.subject}"\n{received_body}\n\nRESPONSE: "{pair.response.subject}"\n{response_body}\n---')
  instruction = _LANGUAGE_INSTRUCTIONS.get(batch.language, _LANGUAGE_INSTRUCTIONS["mixed"])
  joined = "\n".join(examples)
  return f"""
Analyze these email conversations and extract reusable question/answer patterns:

{joined}

IMPORTANT: {instruction}

Identify:
1. Specific question types and the answers the user gives to them
2. Communication style (tone, formality, structure)
3. Response templates that could be reused
4. Keywords that trigger each type of response

Return JSON in this format:
{{
  "patterns": [
    {{
      "pattern_type": "question_response|greeting_style|closing_style|complaint_handling|...",
      "context_category": "customer_inquiry|sales_request|technical_support|...",
      "trigger_keywords": ["keyword1", "keyword2"],
      "response_template": "Template with placeholders like {{customer_name}}",
      "confidence_score": 0.8,
      "example_pairs": [{{"question": "...", "answer": "..."}}]
    }}
  ],
  "style_analysis": {{"tone": "professional|friendly|formal", "avg_response_length": "concise|detailed", "formality_level": "high|medium|low"}}
}}

Prefer patterns that are specific, have clear trigger keywords and generalize to similar emails.
"""


def parse_pattern_payload(payload: dict[str, Any], *, language: str) -> list[LearnedPattern]:
  """Convert the model's JSON into patterns, skipping malformed entries."""
  raw_patterns = payload.get("patterns")
  if not isinstance(raw_patterns, list):
    return []

  patterns: list[LearnedPattern] = []
  for raw in raw_patterns:
    if not isinstance(raw, dict):
      continue
    template = str(raw.get("response_template") or "").strip()
    keywords = raw.get("trigger_keywords") if isinstance(raw.get("trigger_keywords"), list) else []
    examples = raw.get("example_pairs") if isinstance(raw.get("example_pairs"), list) else []
    if not template and not keywords:
      continue
    patterns.append(
      LearnedPattern(
        pattern_type=str(raw.get("pattern_type") or "question_response").strip(),
        context_category=str(raw.get("context_category") or "general").strip(),
        trigger_keywords=tuple(str(keyword).strip() for keyword in keywords if str(keyword).strip()),
        response_template=template,
        confidence=clamp_confidence(raw.get("confidence_score")),
        example_pairs=tuple(example for example in examples if isinstance(example, dict)),
        language=language,
      )
    )
  return patterns


class PatternAnalystAgent(BaseAgent[PatternBatch, PatternAnalysis]):
  """Extract reply patterns from one batch of email pairs."""

  name = "PatternAnalyst"

  async def run(self, input_data: PatternBatch, *, user_id: str | None = None) -> PatternAnalysis:
    response = await self._model.generate_json(build_pattern_prompt(input_data), system=_SYSTEM_PROMPT, temperature=0.3, max_tokens=2000)
    await self._record_usage(purpose=f"patterns_{input_data.language}", usage=response.usage, user_id=user_id)
    patterns = parse_pattern_payload(response.content, language=input_data.language)
    style = response.content.get("style_analysis") if isinstance(response.content.get("style_analysis"), dict) else {}
    logger.info("Pattern batch analyzed language=%s pairs=%d patterns=%d", input_data.language, len(input_data.pairs), len(patterns))
    return PatternAnalysis(patterns=patterns, style=style, tokens_used=int((response.usage or {}).get("total_tokens") or 0))
