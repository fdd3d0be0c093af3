"""Prompt templates for the column mapping model."""
import json
from typing import List

ENTITY_DETECTION_PROMPT = """
You are a data mapping expert for a restaurant and food service management system.
Analyze these columns and determine what type of data entity this file represents.

File Name: {filename}
Columns: {columns}

Available entity types:
{entity_types}

Respond in JSON format:
{{
  "entityType": "detected_type",
  "confidence": 95,
  "reasoning": "Brief explanation of why this entity type was chosen"
}}
"""

COLUMN_MAPPING_PROMPT = """
You are a data mapping expert. Map the source columns to the most appropriate standard fields.
Prefer fields of the "{entity_type}" domain, but use fields from any domain when they fit better.

Source Columns:
{columns}

Available Standard Fields:
{fields}

Previous Successful Mappings (for learning):
{learned}

Instructions:
1. Map every source column to exactly one standard field
2. Consider column names, data types and sample values
3. Learn from previous successful mappings
4. Provide confidence scores (0-100)
5. Include alternative suggestions where applicable

Respond in JSON format:
[
  {{
    "sourceColumn": "column_name",
    "targetField": "standard_field_name",
    "confidence": 95,
    "reasoning": "Brief explanation",
    "alternativeSuggestions": [
      {{"field": "alt_field", "confidence": 70}}
    ]
  }}
]
"""


def _dump(value) -> str:
    return json.dumps(value, indent=2, default=str)


def entity_detection_prompt(filename: str, columns: List[dict], entity_types: List[str]) -> str:
    return ENTITY_DETECTION_PROMPT.format(
        filename=filename,
        columns=_dump(columns),
        entity_types="\n".join(f"- {name}" for name in entity_types),
    )


def column_mapping_prompt(entity_type: str, columns: List[dict], fields: List[dict], learned: List[dict]) -> str:
    return COLUMN_MAPPING_PROMPT.format(
        entity_type=entity_type,
        columns=_dump(columns),
        fields=_dump(fields),
        learned=_dump(learned),
    )
