"""Mapping confirmation and processing API endpoints."""
from typing import List

from fastapi import APIRouter, Depends

from ingestion.api.deps import Owner, get_owner, get_pipeline
from ingestion.schemas.mapping import ConfirmMappingRequest, ConfirmMappingResponse, MappingChoiceRequest
from ingestion.schemas.status import ProcessResponse
from ingestion.services.confirmation import MappingChoice
from ingestion.services.pipeline import IngestionPipeline

router = APIRouter(prefix="/api/data-ingestion", tags=["mappings"])


def to_choices(requests: List[MappingChoiceRequest]) -> List[MappingChoice]:
    return [
        MappingChoice(
            source_column=r.source_column,
            target_field=r.target_field,
            transformation=r.transformation,
            transformation_params=r.transformation_params,
            is_user_override=r.is_user_override,
        )
        for r in requests
    ]


@router.post("/confirm-mapping/{file_id}", response_model=ConfirmMappingResponse)
def confirm_mapping(
    file_id: str,
    payload: ConfirmMappingRequest,
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Confirm column mappings and record them for future suggestions.

    With autoProcess the file is standardized right away (or queued when
    background processing is enabled).
    """
    return pipeline.confirm(
        file_id,
        to_choices(payload.mappings),
        company_id=owner.company_id,
        entity_type=payload.entity_type,
        auto_process=payload.auto_process,
    )


@router.post("/process/{file_id}", response_model=ProcessResponse)
def process_file(
    file_id: str,
    owner: Owner = Depends(get_owner),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Standardize and validate a file whose mappings are confirmed."""
    return pipeline.process(file_id, owner.company_id).to_dict()
