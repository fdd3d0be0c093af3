"""Mapping confirmation and learning from confirmed mappings."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ingestion.config import Settings
from ingestion.database import dialect_insert, unit_of_work
from ingestion.exceptions import (
    InvalidStatusTransitionError,
    MissingRequiredFieldsError,
    UnknownSourceColumnError,
    UnknownStandardFieldError,
)
from ingestion.models.column_mapping import ColumnMapping
from ingestion.models.learning_entry import LearningEntry
from ingestion.models.raw_row import RawRow
from ingestion.models.uploaded_file import UploadedFile
from ingestion.services.field_dictionary import FieldDictionary
from ingestion.services.lifecycle import FileStatus, transition
from ingestion.services.suggester import DEFAULT_ENTITY_TYPE, normalize, slugify
from ingestion.services.transforms import validate_transformation

logger = logging.getLogger(__name__)

CONFIRMABLE_STATUSES = {FileStatus.MAPPING_REQUIRED.value, FileStatus.MAPPING_CONFIRMED.value}


@dataclass
class MappingChoice:
    """One user decision for a source column. A None target ignores the column."""

    source_column: str
    target_field: Optional[str]
    transformation: Optional[str] = None
    transformation_params: Optional[dict] = field(default=None)
    is_user_override: bool = False


@dataclass
class _Previous:
    target_field: str
    confidence: int
    match_type: Optional[str]
    reasoning: Optional[str]
    alternatives: list
    is_confirmed: bool
    is_user_override: bool


def _check_choices(
    choices: List[MappingChoice], entity_type: str, dictionary: FieldDictionary, columns: Optional[List[str]] = None
) -> List[MappingChoice]:
    """Validate choices and drop ignored columns. Later duplicates win."""
    if columns is not None:
        unknown = {c.source_column for c in choices} - set(columns)
        if unknown:
            raise UnknownSourceColumnError(unknown)

    active: Dict[str, MappingChoice] = {}
    for choice in choices:
        if not choice.target_field:
            active.pop(choice.source_column, None)
            continue
        validate_transformation(choice.transformation, choice.transformation_params)
        known = dictionary.get(entity_type, choice.target_field) is not None
        if not known and choice.target_field != slugify(choice.source_column):
            raise UnknownStandardFieldError(
                f"'{choice.target_field}' is not a standard field (column '{choice.source_column}')"
            )
        active[choice.source_column] = choice

    targeted = {c.target_field for c in active.values()}
    missing = set(dictionary.required_fields(entity_type)) - targeted
    if missing:
        raise MissingRequiredFieldsError(missing)
    return list(active.values())


def _file_columns(db: Session, file_id: str) -> Optional[List[str]]:
    """Column names from the stored header row, if the file has one."""
    header = (
        db.query(RawRow)
        .filter(RawRow.file_id == file_id, RawRow.is_header_row.is_(True))
        .one_or_none()
    )
    return header.raw_data["columns"] if header else None


def _learn(db: Session, company_id: str, entity_type: str, column: str, target: str, shared: bool) -> None:
    """Record one successful use of column -> target. Shared entries are offered to every company."""
    stmt = dialect_insert(db, LearningEntry).values(
        company_id=company_id,
        entity_type=entity_type,
        source_column_name=normalize(column),
        target_field=target,
        usage_frequency=1,
        success_rate=1.0,
        is_global=shared,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["company_id", "entity_type", "source_column_name", "target_field"],
        set_={
            "success_rate": (LearningEntry.success_rate * LearningEntry.usage_frequency + 1)
            / (LearningEntry.usage_frequency + 1),
            "usage_frequency": LearningEntry.usage_frequency + 1,
            "is_global": or_(LearningEntry.is_global, stmt.excluded.is_global),
        },
    )
    db.execute(stmt)


def _decay(db: Session, company_id: str, entity_type: str, column: str, rejected_target: str) -> None:
    """Lower the success rate of a suggestion the user replaced."""
    db.query(LearningEntry).filter(
        LearningEntry.company_id == company_id,
        LearningEntry.entity_type == entity_type,
        LearningEntry.source_column_name == normalize(column),
        LearningEntry.target_field == rejected_target,
    ).update(
        {
            LearningEntry.success_rate: (LearningEntry.success_rate * LearningEntry.usage_frequency)
            / (LearningEntry.usage_frequency + 1),
            LearningEntry.usage_frequency: LearningEntry.usage_frequency + 1,
        },
        synchronize_session=False,
    )


def confirm_mappings(
    db: Session,
    file: UploadedFile,
    choices: List[MappingChoice],
    dictionary: FieldDictionary,
    settings: Settings,
    entity_type: Optional[str] = None,
) -> List[ColumnMapping]:
    """
    Replace a file's mappings with the confirmed set and learn from it.

    The mapping rows, learning entries and the status change commit together.

    Raises:
        InvalidStatusTransitionError: if the file is not awaiting confirmation
        MissingRequiredFieldsError: if a required field of the domain is not targeted
        UnknownSourceColumnError: for source columns the file does not have
        UnknownStandardFieldError: for targets outside the field dictionary
        InvalidTransformationError: for unknown transformations
    """
    if file.status not in CONFIRMABLE_STATUSES:
        raise InvalidStatusTransitionError(file.status, FileStatus.MAPPING_CONFIRMED.value)
    if entity_type and entity_type not in dictionary:
        raise UnknownStandardFieldError(f"Unknown entity type '{entity_type}'")

    entity = entity_type or file.entity_type or DEFAULT_ENTITY_TYPE
    active = _check_choices(choices, entity, dictionary, _file_columns(db, file.id))
    levels = settings.confidence_table
    logger.info(f"📝 Confirming {len(active)} mappings for file {file.id} as {entity}")

    with unit_of_work(db):
        previous = {
            m.source_column: _Previous(
                m.target_field, m.confidence, m.match_type, m.reasoning,
                list(m.alternatives or []), m.is_confirmed, m.is_user_override,
            )
            for m in db.query(ColumnMapping).filter(ColumnMapping.file_id == file.id).all()
        }
        db.query(ColumnMapping).filter(ColumnMapping.file_id == file.id).delete(synchronize_session="fetch")

        confirmed = []
        for choice in active:
            earlier = previous.get(choice.source_column)
            overridden = earlier is not None and earlier.target_field != choice.target_field
            if earlier is not None and not overridden:
                confidence = earlier.confidence
                match_type = earlier.match_type
                reasoning = earlier.reasoning
                alternatives = earlier.alternatives
                is_override = choice.is_user_override or earlier.is_user_override
            elif choice.is_user_override or overridden:
                confidence = levels["user_override"]
                match_type = "user"
                reasoning = "Selected by user"
                alternatives = []
                is_override = True
            else:
                confidence = levels["learned"]
                match_type = "user"
                reasoning = "Confirmed without a prior suggestion"
                alternatives = []
                is_override = False

            mapping = ColumnMapping(
                file_id=file.id,
                source_column=choice.source_column,
                target_field=choice.target_field,
                confidence=confidence,
                match_type=match_type,
                reasoning=reasoning,
                alternatives=alternatives,
                transformation=choice.transformation,
                transformation_params=choice.transformation_params,
                is_confirmed=True,
                is_user_override=is_override,
            )
            db.add(mapping)
            confirmed.append(mapping)

            # Only agreements with the built-in aliases are shared across companies
            shared = match_type == "exact_alias" and not is_override
            _learn(db, file.company_id, entity, choice.source_column, choice.target_field, shared)
            if overridden and not earlier.is_confirmed:
                _decay(db, file.company_id, entity, choice.source_column, earlier.target_field)

        file.detected_entity_type = entity
        transition(file, FileStatus.MAPPING_CONFIRMED)

    logger.info(f"✅ Mappings confirmed for file {file.id}")
    return confirmed
