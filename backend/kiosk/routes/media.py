import logging

from fastapi import APIRouter, Depends, HTTPException

from ..config import Settings, get_settings
from ..storage import (
    DriveStorage,
    InvalidPayload,
    SpeechTranscriber,
    StorageError,
    decode_base64_payload,
    get_drive_storage,
    get_transcriber,
)
from .. import schemas
from ._deps import require_fields, require_secret

logger = logging.getLogger(__name__)

router = APIRouter(tags=["media"])


@router.post("/uploadVideo", response_model=schemas.UploadVideoResult)
def upload_video(
    payload: schemas.UploadVideoRequest,
    settings: Settings = Depends(get_settings),
    drive: DriveStorage = Depends(get_drive_storage),
):
    require_secret(settings.drive_credentials, "GOOGLE_DRIVE_CREDENTIALS")
    require_fields(
        "Missing fileName, fileData, or metadata.",
        fileName=payload.file_name,
        fileData=payload.file_data,
        metadata=payload.metadata,
    )
    try:
        data = decode_base64_payload(payload.file_data)
        link = drive.upload(
            payload.file_name,
            data,
            payload.metadata,
            mime_type=payload.mime_type or "audio/webm",
        )
    except (InvalidPayload, StorageError):
        logger.exception("Error uploading %s to Google Drive", payload.file_name)
        raise HTTPException(status_code=500, detail="Failed to upload video.")
    logger.info("Uploaded %s to Drive folder %s", payload.file_name, drive.folder_id)
    return schemas.UploadVideoResult(link=link)


@router.post("/transcribeAudio", response_model=schemas.TranscribeResult)
def transcribe_audio(
    payload: schemas.TranscribeRequest,
    transcriber: SpeechTranscriber = Depends(get_transcriber),
):
    require_fields("Missing audioData in request body.", audioData=payload.audio_data)
    try:
        audio = decode_base64_payload(payload.audio_data)
        transcript = transcriber.transcribe(
            audio,
            encoding=payload.encoding,
            sample_rate_hertz=payload.sample_rate_hertz,
            language_code=payload.language_code,
        )
    except (InvalidPayload, StorageError):
        logger.exception("Error transcribing audio")
        raise HTTPException(
            status_code=500,
            detail="Failed to transcribe audio. Please try speaking more clearly or check your microphone.",
        )
    return schemas.TranscribeResult(transcript=transcript)
