from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

class DocumentType(str, Enum):
    IDENTITY_CARD = "identity-card"
    TAX_ID_CARD = "tax-id-card"
    GRADE_TRANSCRIPT = "grade-transcript"
    CASTE_CERTIFICATE = "caste-certificate"
    RESIDENCY_CERTIFICATE = "residency-certificate"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ")

class ExtractionResult(BaseModel):
    doc_type: str
    fields: Dict[str, str] = Field(default_factory=dict)
    missing_fields: List[str] = Field(default_factory=list)     # expected but absent in the model output
    unexpected_fields: List[str] = Field(default_factory=list)  # returned by the model but not expected

class DocumentTypeInfo(BaseModel):
    doc_type: str
    label: str
    fields: List[str]

class AnalyzeResponse(BaseModel):
    success: bool = True
    message: str
    doc_type: str
    extracted_data: Dict[str, str]
    missing_fields: List[str] = Field(default_factory=list)
    unexpected_fields: List[str] = Field(default_factory=list)

class SessionDataResponse(BaseModel):
    success: bool
    data: Optional[Dict[str, Dict[str, str]]] = None
    message: Optional[str] = None

class SubmitResponse(BaseModel):
    success: bool
    message: str
