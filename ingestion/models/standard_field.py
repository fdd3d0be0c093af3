"""Standard field definition model (reference data)."""
from sqlalchemy import Boolean, Column, Float, Integer, String, Text, UniqueConstraint

from ingestion.database import Base, JSONType


class StandardFieldDefinition(Base):
    """Canonical target field for one business domain."""

    __tablename__ = "standard_field_definitions"

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String(50), nullable=False, index=True)
    field_name = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=False)
    data_type = Column(String(30), nullable=False, default="text")
    is_required = Column(Boolean, default=False, nullable=False)
    common_aliases = Column(JSONType, nullable=False, default=list)
    allowed_values = Column(JSONType, nullable=True)
    validation_regex = Column(String(500), nullable=True)
    min_value = Column(Float, nullable=True)
    max_value = Column(Float, nullable=True)
    description = Column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("domain", "field_name", name="uq_standard_fields_domain_name"),)
