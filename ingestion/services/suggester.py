"""Column mapping suggestions: deterministic matching with an optional model pass."""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ingestion.config import Settings
from ingestion.exceptions import LLMUnavailableError, MalformedLLMResponseError
from ingestion.models.learning_entry import LearningEntry
from ingestion.services.field_dictionary import FieldDictionary, StandardField
from ingestion.services.llm_client import ClaudeMappingClient
from ingestion.services.parsers import ColumnProfile
from ingestion.services.prompts import column_mapping_prompt, entity_detection_prompt

logger = logging.getLogger(__name__)

REVIEW_THRESHOLD = 70
MIN_SUBSTRING_LENGTH = 3
MAX_ALTERNATIVES = 3
DEFAULT_ENTITY_TYPE = "inventory"

# Checked in order; the first keyword found in the filename wins.
FILENAME_KEYWORDS: List[Tuple[Tuple[str, ...], str]] = [
    (("recipe", "bom"), "recipes"),
    (("ingredient",), "ingredients"),
    (("menu", "product"), "menu_items"),
    (("inventory", "stock"), "inventory"),
    (("order",), "orders"),
    (("supplier", "vendor"), "suppliers"),
    (("customer",), "customers"),
    (("sale",), "sales"),
    (("purchase",), "purchases"),
    (("shipment", "logistics"), "logistics"),
    (("ledger", "transaction"), "financial"),
]


@dataclass(frozen=True)
class SuggesterConfig:
    """Immutable settings a suggester is built with."""

    confidence: Mapping[str, int]
    premium_model: str
    economy_model: str
    premium_column_threshold: int = 15
    premium_ambiguity_ratio: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "SuggesterConfig":
        return cls(
            confidence=dict(settings.confidence_table),
            premium_model=settings.premium_model,
            economy_model=settings.economy_model,
            premium_column_threshold=settings.premium_column_threshold,
            premium_ambiguity_ratio=settings.premium_ambiguity_ratio,
        )


@dataclass
class MappingSuggestion:
    source_column: str
    target_field: str
    confidence: int
    match_type: str
    reasoning: str = ""
    alternatives: List[dict] = field(default_factory=list)

    @property
    def requires_review(self) -> bool:
        return self.confidence < REVIEW_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "source_column": self.source_column,
            "target_field": self.target_field,
            "confidence": self.confidence,
            "match_type": self.match_type,
            "reasoning": self.reasoning,
            "alternatives": self.alternatives,
            "requires_review": self.requires_review,
        }


@dataclass
class SuggestionResult:
    suggestions: List[MappingSuggestion]
    model: Optional[str] = None
    strategy: str = "deterministic"  # deterministic, llm, llm_fallback


@dataclass
class EntityDetection:
    entity_type: str
    confidence: int
    reasoning: str
    method: str  # declared, llm, filename, columns, default


def normalize(name: str) -> str:
    return str(name).strip().lower()


def slugify(name: str) -> str:
    """Turn a column header into a snake_case field name."""
    slug = re.sub(r"[^a-z0-9]+", "_", normalize(name)).strip("_")
    return slug or "column"


def clamp_confidence(value) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    # Some replies use 0-1 instead of 0-100
    if isinstance(value, float) and 0 < number <= 1:
        number *= 100
    return int(max(0, min(100, round(number))))


def detect_entity_from_filename(filename: str) -> Optional[str]:
    name = (filename or "").lower()
    for keywords, entity_type in FILENAME_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return entity_type
    return None


def _names(definition: StandardField) -> List[str]:
    names = [definition.field_name, definition.field_name.replace("_", " "), definition.display_name.lower()]
    names.extend(definition.aliases)
    return names


def _exact_match(column: str, definition: StandardField) -> bool:
    variants = {column, column.replace("_", " ")}
    return any(name in variants for name in _names(definition))


def _substring_match(column: str, definition: StandardField) -> bool:
    spaced = column.replace("_", " ")
    for name in _names(definition):
        if len(name) >= MIN_SUBSTRING_LENGTH and (name in spaced or name in column):
            return True
        if len(spaced) >= MIN_SUBSTRING_LENGTH and spaced in name:
            return True
    return False


def load_learning_entries(
    db: Session,
    company_id: str,
    entity_type: Optional[str],
    min_success_rate: float = 0.7,
    limit: int = 50,
) -> List[LearningEntry]:
    """Company and global learning entries above the success threshold, best first."""
    query = db.query(LearningEntry).filter(
        or_(LearningEntry.company_id == company_id, LearningEntry.is_global.is_(True)),
        LearningEntry.success_rate >= min_success_rate,
    )
    if entity_type:
        query = query.filter(LearningEntry.entity_type == entity_type)
    return (
        query.order_by(
            LearningEntry.is_global,
            LearningEntry.success_rate.desc(),
            LearningEntry.usage_frequency.desc(),
        )
        .limit(limit)
        .all()
    )


def learned_lookup(entries: Iterable[LearningEntry]) -> Dict[str, str]:
    """Map normalized source column -> target field; the first entry wins."""
    lookup: Dict[str, str] = {}
    for entry in entries:
        lookup.setdefault(normalize(entry.source_column_name), entry.target_field)
    return lookup


class MappingSuggester:
    """
    Suggest one target field per source column.

    Deterministic matching always runs. When a model client is configured its
    reply is preferred, and any column it skips or answers badly falls back
    to the deterministic suggestion.
    """

    def __init__(
        self,
        dictionary: FieldDictionary,
        config: SuggesterConfig,
        llm: Optional[ClaudeMappingClient] = None,
    ):
        self.dictionary = dictionary
        self.config = config
        self.llm = llm

    # Deterministic strategy

    def suggest_column(
        self, column: str, entity_type: Optional[str], learned: Optional[Mapping[str, str]] = None
    ) -> MappingSuggestion:
        levels = self.config.confidence
        normalized = normalize(column)
        ordered = self.dictionary.search_order(entity_type)

        exact = [f for f in ordered if _exact_match(normalized, f)]
        substring = [f for f in ordered if f not in exact and _substring_match(normalized, f)]
        candidates: List[Tuple[str, int]] = [(f.field_name, levels["exact_alias"]) for f in exact]
        candidates += [(f.field_name, levels["substring"]) for f in substring]

        learned_target = (learned or {}).get(normalized)
        if learned_target:
            agrees = bool(exact) and exact[0].field_name == learned_target
            confidence = levels["exact_alias"] if agrees else levels["learned"]
            suggestion = MappingSuggestion(
                column, learned_target, confidence, "learned", "Previously confirmed mapping for this column"
            )
        elif exact:
            suggestion = MappingSuggestion(
                column, exact[0].field_name, levels["exact_alias"], "exact_alias",
                f"Column name matches {exact[0].domain}.{exact[0].field_name}",
            )
        elif substring:
            suggestion = MappingSuggestion(
                column, substring[0].field_name, levels["substring"], "substring",
                f"Column name partially matches {substring[0].domain}.{substring[0].field_name}",
            )
        else:
            suggestion = MappingSuggestion(
                column, slugify(column), levels["fallback"], "fallback", "No matching standard field"
            )

        seen = {suggestion.target_field}
        for name, confidence in candidates:
            if name in seen:
                continue
            seen.add(name)
            suggestion.alternatives.append({"field": name, "confidence": confidence})
            if len(suggestion.alternatives) >= MAX_ALTERNATIVES:
                break
        return suggestion

    def suggest_deterministic(
        self, columns: List[str], entity_type: Optional[str], learned: Optional[Mapping[str, str]] = None
    ) -> List[MappingSuggestion]:
        return [self.suggest_column(column, entity_type, learned) for column in columns]

    # Model routing

    def select_model(self, column_count: int, unmatched_count: int) -> str:
        """Premium model for wide or ambiguous files, economy otherwise."""
        if column_count > self.config.premium_column_threshold:
            return self.config.premium_model
        if column_count and unmatched_count / column_count > self.config.premium_ambiguity_ratio:
            return self.config.premium_model
        return self.config.economy_model

    # Combined strategy

    def suggest(
        self,
        profiles: List[ColumnProfile],
        entity_type: Optional[str],
        learned_entries: Optional[List[LearningEntry]] = None,
    ) -> SuggestionResult:
        """
        Suggest mappings for every profiled column.

        Raises:
            LLMAuthenticationError, LLMModelNotFoundError, LLMRateLimitError:
                surfaced from the model client
        """
        columns = [p.column_name for p in profiles]
        learned = learned_lookup(learned_entries or [])
        baseline = self.suggest_deterministic(columns, entity_type, learned)
        if self.llm is None:
            return SuggestionResult(baseline)

        unmatched = sum(1 for s in baseline if s.match_type == "fallback")
        model = self.select_model(len(columns), unmatched)
        prompt = column_mapping_prompt(
            entity_type or DEFAULT_ENTITY_TYPE,
            [p.to_prompt() for p in profiles],
            [f.to_prompt() for f in self.dictionary.search_order(entity_type)],
            [
                {
                    "sourceColumn": e.source_column_name,
                    "targetField": e.target_field,
                    "successRate": e.success_rate,
                }
                for e in learned_entries or []
            ],
        )
        try:
            reply = self.llm.complete_json(prompt, model)
            by_column = self._parse_reply(reply, columns)
        except (LLMUnavailableError, MalformedLLMResponseError) as e:
            logger.warning(f"⚠️ Model mapping failed, using deterministic suggestions: {e}")
            return SuggestionResult(baseline, model=model, strategy="llm_fallback")

        suggestions = [by_column.get(s.source_column, s) for s in baseline]
        logger.info(f"Model {model} mapped {len(by_column)}/{len(columns)} columns")
        return SuggestionResult(suggestions, model=model, strategy="llm")

    def _parse_reply(self, reply, columns: List[str]) -> Dict[str, MappingSuggestion]:
        if isinstance(reply, dict):
            lists = [v for v in reply.values() if isinstance(v, list)]
            reply = lists[0] if lists else None
        if not isinstance(reply, list):
            raise MalformedLLMResponseError("Expected a JSON list of mappings")

        known = set(columns)
        parsed: Dict[str, MappingSuggestion] = {}
        for item in reply:
            if not isinstance(item, dict):
                continue
            column = item.get("sourceColumn")
            target = item.get("targetField")
            if column not in known or column in parsed or not isinstance(target, str):
                continue
            if self.dictionary.get(None, target) is None and target != slugify(column):
                logger.debug(f"Ignoring unknown field '{target}' suggested for '{column}'")
                continue
            alternatives = [
                {"field": alt.get("field"), "confidence": clamp_confidence(alt.get("confidence"))}
                for alt in item.get("alternativeSuggestions") or []
                if isinstance(alt, dict) and isinstance(alt.get("field"), str)
            ]
            parsed[column] = MappingSuggestion(
                source_column=column,
                target_field=target,
                confidence=clamp_confidence(item.get("confidence")),
                match_type="llm",
                reasoning=str(item.get("reasoning") or ""),
                alternatives=alternatives[:MAX_ALTERNATIVES],
            )
        return parsed

    # Entity detection

    def detect_entity_type(
        self, profiles: List[ColumnProfile], filename: str, declared: Optional[str] = None
    ) -> EntityDetection:
        if declared and declared in self.dictionary:
            return EntityDetection(declared, 100, "Entity type declared at upload", "declared")

        if self.llm is not None:
            prompt = entity_detection_prompt(
                filename, [p.to_prompt() for p in profiles], self.dictionary.domains
            )
            try:
                reply = self.llm.complete_json(prompt, self.config.economy_model, max_tokens=500)
                entity_type = reply.get("entityType") if isinstance(reply, dict) else None
                if entity_type in self.dictionary:
                    return EntityDetection(
                        entity_type,
                        clamp_confidence(reply.get("confidence")),
                        str(reply.get("reasoning") or ""),
                        "llm",
                    )
                logger.warning(f"⚠️ Model returned unknown entity type: {entity_type}")
            except (LLMUnavailableError, MalformedLLMResponseError) as e:
                logger.warning(f"⚠️ Model entity detection failed, falling back: {e}")

        from_name = detect_entity_from_filename(filename)
        if from_name and from_name in self.dictionary:
            return EntityDetection(from_name, 80, f"Filename suggests {from_name}", "filename")

        return self._detect_from_columns([p.column_name for p in profiles])

    def _detect_from_columns(self, columns: List[str]) -> EntityDetection:
        best, best_hits = None, 0
        for domain in self.dictionary.domains:
            fields = self.dictionary.fields_for(domain)
            hits = sum(
                1 for c in columns
                if any(_exact_match(normalize(c), f) or _substring_match(normalize(c), f) for f in fields)
            )
            if hits > best_hits:
                best, best_hits = domain, hits
        if best is None:
            return EntityDetection(DEFAULT_ENTITY_TYPE, 0, "No columns matched any domain", "default")
        confidence = round(best_hits / len(columns) * 100)
        return EntityDetection(best, confidence, f"{best_hits} of {len(columns)} columns match {best}", "columns")
