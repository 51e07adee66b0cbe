import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from logger import get_logger
from models.document_models import (
    AnalyzeResponse,
    DocumentType,
    DocumentTypeInfo,
    SessionDataResponse,
    SubmitResponse,
)
from services.document_analysis_service import DocumentAnalyzer
from services.exceptions import AnalysisError, CallerInputError, SessionOperationError
from services.prompt_service import expected_fields, is_well_formed_tag, resolve_document_type
from services.session_service import SessionStore

router = APIRouter(prefix="/documents", tags=["documents"])

logger = get_logger(__name__)

SESSION_KEY = "sid"


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_document_analyzer(request: Request) -> DocumentAnalyzer:
    return request.app.state.document_analyzer


@router.get("/types", response_model=List[DocumentTypeInfo])
async def list_document_types():
    return [
        DocumentTypeInfo(doc_type=t.value, label=t.label, fields=list(expected_fields(t.value)))
        for t in DocumentType
    ]


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_document(
    request: Request,
    document: Optional[UploadFile] = File(None),
    doc_type: Optional[str] = Form(None),
    docType: Optional[str] = Form(None),
    store: SessionStore = Depends(get_session_store),
    analyzer: DocumentAnalyzer = Depends(get_document_analyzer),
):
    tag = doc_type or docType
    if document is None or not tag:
        raise HTTPException(status_code=400, detail="File or document type missing.")
    if not is_well_formed_tag(tag):
        raise HTTPException(status_code=400, detail="Invalid document type.")

    resolved = resolve_document_type(tag)
    session_key = resolved.value if resolved else tag.strip().lower()

    image_bytes = await document.read()

    try:
        result = await analyzer.analyze(image_bytes, document.content_type, session_key)
    except CallerInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AnalysisError as e:
        # transport vs parse failure is already logged by the analyzer
        logger.warning("Analysis of %s failed (%s)", session_key, type(e).__name__)
        raise HTTPException(status_code=502, detail="Failed to analyze the document.")

    session_id = request.session.get(SESSION_KEY)

    try:
        # a cookie whose record was destroyed or expired never gets its id back
        if not session_id or store.get(session_id) is None:
            session_id = uuid.uuid4().hex
        store.put(session_id, session_key, result.fields)
    except SessionOperationError as e:
        logger.error("Could not store %s for session %s: %s", session_key, session_id, e)
        raise HTTPException(status_code=500, detail="Failed to save the document data.")

    request.session[SESSION_KEY] = session_id

    label = resolved.label if resolved else session_key.replace("_", " ").replace("-", " ")
    return AnalyzeResponse(
        message=f"{label} uploaded successfully.",
        doc_type=session_key,
        extracted_data=result.fields,
        missing_fields=result.missing_fields,
        unexpected_fields=result.unexpected_fields,
    )


@router.get("/session-data", response_model=SessionDataResponse, response_model_exclude_none=True)
async def get_session_data(request: Request, store: SessionStore = Depends(get_session_store)):
    session_id = request.session.get(SESSION_KEY)
    record = None
    if session_id:
        try:
            record = store.get(session_id)
        except SessionOperationError as e:
            logger.error("Could not read session %s: %s", session_id, e)
            raise HTTPException(status_code=500, detail="Could not load session data.")

    if record is None:
        return SessionDataResponse(success=False, message="No document data found in session.")
    return SessionDataResponse(success=True, data=record)


@router.post("/submit", response_model=SubmitResponse)
async def submit_form(request: Request, store: SessionStore = Depends(get_session_store)):
    session_id = request.session.get(SESSION_KEY)
    if session_id:
        try:
            store.destroy(session_id)
        except SessionOperationError as e:
            logger.error("Could not destroy session %s: %s", session_id, e)
            raise HTTPException(status_code=500, detail="Could not submit the form, please try again.")

    # an emptied session makes SessionMiddleware expire the cookie
    request.session.clear()
    return SubmitResponse(success=True, message="Form submitted and session destroyed.")
