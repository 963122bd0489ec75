"""Relevance filtering of retrieved candidates."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from civic_rag.errors import CollaboratorUnavailable, MalformedStructuredOutput
from civic_rag.llm.base import CompletionOptions, LLMProvider

from .models import Candidate, CandidateKind, QueryScope, StructuredIntent
from .structured import parse_json_object

logger = logging.getLogger(__name__)

DISCRIMINATOR_PROMPT = """You are a result filter for Terrace business/document search. Analyze candidates and return ONLY valid JSON.

CRITICAL RULES:
- Be STRICT: topic must match, not just keywords
- Reject keyword-only matches (e.g., "Safeway" query is not "SAFE-T Safety" business)
- For business queries: category must be relevant (e.g., HVAC query requires hvac category)
- Return top 1-3 most relevant results

Required JSON structure:
{
  "relevantCandidates": [1, 2, 3],
  "irrelevantCandidates": [4, 5],
  "rankings": [
    {"id": 1, "confidence": 0.95, "relevance": "HIGH", "reason": "exact category match"},
    {"id": 2, "confidence": 0.78, "relevance": "MEDIUM", "reason": "related category"}
  ],
  "finalSelection": [1, 2]
}

Return ONLY the JSON object, no explanations."""


@dataclass
class Ranking:
    id: int
    confidence: float
    relevance: str = "MEDIUM"
    reason: str = ""


@dataclass
class DiscriminatorResult:
    """Outcome of filtering one candidate batch."""

    final_selection: list[int] = field(default_factory=list)
    rankings: list[Ranking] = field(default_factory=list)
    relevant: list[int] = field(default_factory=list)
    irrelevant: list[int] = field(default_factory=list)


def find_exact_match(name: str, candidates: Sequence[Candidate]) -> Candidate | None:
    """First candidate whose name contains ``name`` or is contained in it."""
    wanted = name.strip().lower()
    if not wanted:
        return None
    for candidate in candidates:
        have = candidate.display_name.strip().lower()
        if have and (wanted in have or have in wanted):
            return candidate
    return None


def render_candidates(candidates: Sequence[Candidate]) -> str:
    blocks = []
    for c in candidates:
        if c.kind == CandidateKind.BUSINESS:
            lines = [
                f"name: {c.display_name}",
                f"category: {c.category} subcategory: {c.subcategory}",
                f"address: {c.summary}",
            ]
        else:
            lines = [
                f"title: {c.display_name}",
                f"doc_type: document category: {c.category}",
                f"summary: {c.summary[:100]}",
            ]
        lines.append(f"retrieval_score: {c.retrieval_score:.2f}")
        blocks.append(f"CANDIDATE_{c.id}:\n  " + "\n  ".join(lines))
    return "\n\n".join(blocks)


def _id_list(value, valid: set[int]) -> list[int]:
    if not isinstance(value, list):
        return []
    ids = []
    for item in value:
        try:
            candidate_id = int(item)
        except (TypeError, ValueError):
            continue
        if candidate_id in valid and candidate_id not in ids:
            ids.append(candidate_id)
    return ids


class Discriminator:
    """Removes candidates that share vocabulary but not topic with the query."""

    def __init__(self, llm_provider: LLMProvider):
        self.llm_provider = llm_provider

    async def filter(
        self,
        original_query: str,
        intent: StructuredIntent,
        candidates: Sequence[Candidate],
        max_results: int = 3,
    ) -> DiscriminatorResult:
        """Select the truly relevant candidates.

        Args:
            original_query: The user's query
            intent: Structured intent from the orchestrator
            candidates: Candidate batch with 1-based ids
            max_results: Maximum ids in the final selection

        Returns:
            DiscriminatorResult whose ids all exist in ``candidates``
        """
        if not candidates:
            return DiscriminatorResult()

        if intent.query_scope == QueryScope.SPECIFIC_BUSINESS and intent.specific_business_name:
            match = find_exact_match(intent.specific_business_name, candidates)
            if match is not None:
                logger.info(f"Exact business name match: {match.display_name}")
                return DiscriminatorResult(
                    final_selection=[match.id],
                    rankings=[Ranking(match.id, 0.95, "HIGH", "exact_business_name_match")],
                    relevant=[match.id],
                    irrelevant=[c.id for c in candidates if c.id != match.id],
                )

        try:
            result = await self._filter_with_llm(original_query, intent, candidates, max_results)
        except (CollaboratorUnavailable, MalformedStructuredOutput) as e:
            logger.warning(f"Discriminator fell back to top scores: {e}")
            return self._fallback(candidates, max_results)

        logger.info(
            f"Discriminator kept {len(result.final_selection)} of {len(candidates)} "
            f"(rejected {len(result.irrelevant)})"
        )
        return result

    async def _filter_with_llm(
        self,
        original_query: str,
        intent: StructuredIntent,
        candidates: Sequence[Candidate],
        max_results: int,
    ) -> DiscriminatorResult:
        user_message = (
            f"ORIGINAL_QUERY: {original_query}\n"
            f"EXTRACTED_KEYWORDS: {' '.join(intent.keywords)}\n"
            f"INTENT: {intent.intent}\n"
            f"QUERY_KIND: {intent.query_kind.value}\n"
            f"CATEGORY_HINTS: {' '.join(intent.category_hints)}\n\n"
            f"RETRIEVED_CANDIDATES: {len(candidates)}\n\n"
            f"{render_candidates(candidates)}\n\n"
            "Filter these candidates and identify which are truly relevant to the query."
        )
        response = await self.llm_provider.complete(
            DISCRIMINATOR_PROMPT,
            user_message,
            CompletionOptions(temperature=0.2, max_tokens=500, json_mode=True),
        )
        if not response.success:
            raise CollaboratorUnavailable(self.llm_provider.name, response.error or "completion failed")

        data = parse_json_object("discriminator", response.content)
        valid = {c.id for c in candidates}
        by_id = {c.id: c for c in candidates}

        relevant = _id_list(data.get("relevantCandidates"), valid)
        selection = _id_list(data.get("finalSelection"), valid) or relevant
        if not selection:
            raise MalformedStructuredOutput("discriminator", response.content, "no known candidate ids selected")

        rankings = []
        for entry in data.get("rankings") or []:
            if not isinstance(entry, dict):
                continue
            try:
                candidate_id = int(entry.get("id"))
                if candidate_id not in valid:
                    continue
                confidence = float(entry.get("confidence", by_id[candidate_id].retrieval_score))
            except (TypeError, ValueError):
                continue
            rankings.append(
                Ranking(
                    id=candidate_id,
                    confidence=max(0.0, min(1.0, confidence)),
                    relevance=str(entry.get("relevance", "MEDIUM")),
                    reason=str(entry.get("reason", "")),
                )
            )

        return DiscriminatorResult(
            final_selection=selection[:max_results],
            rankings=rankings,
            relevant=relevant,
            irrelevant=_id_list(data.get("irrelevantCandidates"), valid),
        )

    def _fallback(self, candidates: Sequence[Candidate], max_results: int) -> DiscriminatorResult:
        top = sorted(candidates, key=lambda c: c.retrieval_score, reverse=True)[:max_results]
        ids = [c.id for c in top]
        return DiscriminatorResult(
            final_selection=ids,
            rankings=[Ranking(c.id, c.retrieval_score, "MEDIUM", "fallback_top_score") for c in top],
            relevant=ids,
        )
