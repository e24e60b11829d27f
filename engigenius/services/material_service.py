"""
services/material_service.py

Builds the two short context strings the system prompt embeds:
  - which syllabus files the user uploaded (titles)
  - which past papers the user uploaded (years)

Metadata only. File contents are never read here.
"""

from dataclasses import dataclass
from typing import Any, Optional

from engigenius.core.errors import StoreError
from engigenius.core.logger import get_logger
from engigenius.models.records import PAST_PAPERS, SYLLABUS
from engigenius.services.record_store import RecordStore, record_store

logger = get_logger(__name__)

NO_SYLLABUS = "No syllabus uploaded yet"
NO_PAST_PAPERS = "No past papers uploaded yet"


@dataclass(frozen=True)
class MaterialContext:
    syllabus: str = NO_SYLLABUS
    past_papers: str = NO_PAST_PAPERS


def describe_syllabus(rows: list[dict[str, Any]]) -> str:
    if not rows:
        return NO_SYLLABUS
    titles = ", ".join(str(r.get("title") or "untitled") for r in rows)
    return f"User has uploaded {len(rows)} syllabus file(s): {titles}"


def describe_past_papers(rows: list[dict[str, Any]]) -> str:
    if not rows:
        return NO_PAST_PAPERS
    # distinct years, first-seen order
    years = list(dict.fromkeys(str(r.get("year")) for r in rows if r.get("year") is not None))
    return f"User has uploaded {len(rows)} past paper(s) from years: {', '.join(years)}"


class MaterialService:
    def __init__(self, store: RecordStore):
        self._store = store

    async def _rows(self, table: str, columns: list[str], user_id: str) -> list[dict[str, Any]]:
        try:
            return await self._store.select(table, columns, user_id=user_id)
        except StoreError as e:
            logger.warning(f"Material lookup failed for {table}: {e}")
            return []

    async def build_context(self, user_id: Optional[str]) -> MaterialContext:
        if not user_id:
            return MaterialContext()

        syllabus = await self._rows(SYLLABUS, ["title", "file_url"], user_id)
        papers = await self._rows(PAST_PAPERS, ["year", "subject"], user_id)

        logger.debug(f"[{user_id}] materials: {len(syllabus)} syllabus, {len(papers)} past papers")
        return MaterialContext(
            syllabus=describe_syllabus(syllabus),
            past_papers=describe_past_papers(papers),
        )


# Singleton
material_service = MaterialService(record_store)
