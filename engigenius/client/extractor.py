"""
client/extractor.py

Pulls the trailing ```json block out of a finished answer.

The system prompt asks the model to end every answer with:
  ```json
  {"important_topics": ["..."], "summary": "..."}
  ```
Handles 3 cases:
  1. No block           → None
  2. Block, bad JSON    → None (logged)
  3. Block, valid JSON  → ExtractedInsight
"""

import json
import random
import re
from typing import Optional, Union

from engigenius.core.config import settings
from engigenius.core.logger import get_logger
from engigenius.models.records import AIAnswerRecord, ExtractedInsight, ImportantTopicRecord

logger = get_logger(__name__)

JSON_BLOCK_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")


def extract_insight(text: str) -> Optional[ExtractedInsight]:
    match = JSON_BLOCK_RE.search(text or "")
    if not match:
        return None

    try:
        data = json.loads(match.group(1))
    except (ValueError, RecursionError) as e:
        logger.warning(f"Could not parse JSON block from answer: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"JSON block is not an object: {type(data).__name__}")
        return None

    raw_topics = data.get("important_topics")
    topics = [t for t in raw_topics if isinstance(t, str)] if isinstance(raw_topics, list) else []
    summary = data.get("summary")
    return ExtractedInsight(
        topics=topics,
        summary=summary if isinstance(summary, str) else None,
    )


def topic_probability(rng: Optional[random.Random] = None) -> int:
    """Placeholder likelihood until real predictions exist."""
    rng = rng or random
    return rng.randint(settings.TOPIC_PROBABILITY_MIN, settings.TOPIC_PROBABILITY_MAX)


def build_records(
    user_id: str,
    question: str,
    answer: str,
    insight: Optional[ExtractedInsight],
    subject: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> list[Union[ImportantTopicRecord, AIAnswerRecord]]:
    """One topic record per extracted topic, then the answer record."""
    subject = subject or settings.DEFAULT_SUBJECT
    records: list[Union[ImportantTopicRecord, AIAnswerRecord]] = []
    if insight is not None:
        for topic in insight.topics:
            records.append(ImportantTopicRecord(
                user_id=user_id,
                subject=subject,
                topic=topic,
                probability=topic_probability(rng),
            ))
    records.append(AIAnswerRecord(
        user_id=user_id,
        question=question,
        answer=answer,
        summary=(insight.summary if insight and insight.summary else ""),
        subject=subject,
    ))
    return records
