"""Field dictionary: standard field definitions grouped by domain."""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from ingestion.database import dialect_insert
from ingestion.models.standard_field import StandardFieldDefinition
from ingestion.services.field_catalog import STANDARD_FIELDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StandardField:
    """Read-only view of one standard field definition."""

    domain: str
    field_name: str
    display_name: str
    data_type: str = "text"
    is_required: bool = False
    aliases: Sequence[str] = field(default_factory=tuple)
    allowed_values: Optional[Sequence[str]] = None
    validation_regex: Optional[str] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    @classmethod
    def from_model(cls, row: StandardFieldDefinition) -> "StandardField":
        return cls(
            domain=row.domain,
            field_name=row.field_name,
            display_name=row.display_name,
            data_type=row.data_type,
            is_required=row.is_required,
            aliases=tuple(a.lower().strip() for a in (row.common_aliases or [])),
            allowed_values=tuple(row.allowed_values) if row.allowed_values else None,
            validation_regex=row.validation_regex,
            min_value=row.min_value,
            max_value=row.max_value,
        )

    def to_prompt(self) -> dict:
        return {
            "domain": self.domain,
            "field_name": self.field_name,
            "display_name": self.display_name,
            "data_type": self.data_type,
            "is_required": self.is_required,
            "aliases": list(self.aliases),
        }


class FieldDictionary:
    """In-memory catalog built once per mapping session."""

    def __init__(self, fields: Iterable[StandardField]):
        self._by_domain: Dict[str, List[StandardField]] = {}
        for item in fields:
            self._by_domain.setdefault(item.domain, []).append(item)

    @property
    def domains(self) -> List[str]:
        return list(self._by_domain)

    def fields_for(self, domain: Optional[str]) -> List[StandardField]:
        return list(self._by_domain.get(domain, []))

    def all_fields(self) -> List[StandardField]:
        return [f for fields in self._by_domain.values() for f in fields]

    def search_order(self, domain: Optional[str]) -> List[StandardField]:
        """Fields of ``domain`` first, then every other domain's fields."""
        ordered = self.fields_for(domain)
        ordered.extend(f for d, fields in self._by_domain.items() if d != domain for f in fields)
        return ordered

    def get(self, domain: Optional[str], field_name: str) -> Optional[StandardField]:
        """Look up a field in ``domain``, falling back to any domain."""
        for item in self.search_order(domain):
            if item.field_name == field_name:
                return item
        return None

    def required_fields(self, domain: Optional[str]) -> List[str]:
        return [f.field_name for f in self.fields_for(domain) if f.is_required]

    def __contains__(self, domain: str) -> bool:
        return domain in self._by_domain


def load_field_dictionary(db: Session) -> FieldDictionary:
    """Load every standard field definition from the database."""
    rows = (
        db.query(StandardFieldDefinition)
        .order_by(StandardFieldDefinition.domain, StandardFieldDefinition.id)
        .all()
    )
    return FieldDictionary(StandardField.from_model(row) for row in rows)


def seed_standard_fields(db: Session) -> int:
    """
    Upsert the built-in catalog into standard_field_definitions.

    Returns:
        Number of definitions written
    """
    values = [
        {"domain": domain, **definition}
        for domain, definitions in STANDARD_FIELDS.items()
        for definition in definitions
    ]
    stmt = dialect_insert(db, StandardFieldDefinition).values(values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["domain", "field_name"],
        set_={
            "display_name": stmt.excluded.display_name,
            "data_type": stmt.excluded.data_type,
            "is_required": stmt.excluded.is_required,
            "common_aliases": stmt.excluded.common_aliases,
            "allowed_values": stmt.excluded.allowed_values,
            "validation_regex": stmt.excluded.validation_regex,
            "min_value": stmt.excluded.min_value,
            "max_value": stmt.excluded.max_value,
            "description": stmt.excluded.description,
        },
    )
    db.execute(stmt)
    db.commit()
    logger.info(f"Seeded {len(values)} standard field definitions")
    return len(values)
