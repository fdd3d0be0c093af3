"""Celery tasks for background analysis and processing."""
import logging

from ingestion.config import get_settings
from ingestion.database import SessionLocal
from ingestion.services.pipeline import build_pipeline
from ingestion.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def analyze_file_task(self, file_id: str) -> dict:
    """
    Analyze an uploaded file in the background.

    The pipeline marks the file failed on error; the task only logs and re-raises.
    """
    logger.info(f"🚀 Starting analysis task: file_id={file_id}")
    db = SessionLocal()
    try:
        result = build_pipeline(db, get_settings()).analyze(file_id)
        logger.info(f"🎉 Analysis task completed for file {file_id}")
        return {
            "status": result.file.status,
            "file_id": file_id,
            "entity_type": result.detection.entity_type,
            "suggestions": len(result.suggestions.suggestions),
        }
    except Exception as e:
        logger.error(f"💥 Analysis task failed for file {file_id}: {str(e)}", exc_info=True)
        raise
    finally:
        db.close()


@celery_app.task(bind=True)
def process_file_task(self, file_id: str) -> dict:
    """
    Standardize a confirmed file in the background.
    This runs in Celery worker, NOT in web request context.
    """
    logger.info(f"🚀 Starting processing task: file_id={file_id}")
    db = SessionLocal()
    try:
        result = build_pipeline(db, get_settings()).process(file_id)
        logger.info(f"🎉 Processing task completed: {result.to_dict()}")
        return result.to_dict()
    except Exception as e:
        logger.error(f"💥 Processing task failed for file {file_id}: {str(e)}", exc_info=True)
        raise
    finally:
        db.close()
