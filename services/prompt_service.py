import re
from typing import Dict, Optional, Tuple

from models.document_models import DocumentType

BASE_PROMPT = (
    "You are an expert data extraction AI. Analyze this image of a government document. "
    "Return the data ONLY in a valid JSON object format. Do not include any other text or markdown formatting. "
    "Use double quotes for every key and every value, and return every value as a string. "
    "If a field is not found, use an empty string \"\" as the value. "
    "Extract the following fields with these exact JSON keys: "
)

GENERIC_FIELDS_CLAUSE = "any visible name as 'name', numbers, and dates."

# (description, json key) pairs, in the order the prompt lists them
DOCUMENT_FIELDS: Dict[DocumentType, Tuple[Tuple[str, str], ...]] = {
    DocumentType.IDENTITY_CARD: (
        ("full name", "name"),
        ("identity card number", "idNumber"),
        ("gender", "gender"),
        ("address", "address"),
        ("date of birth", "dob"),
    ),
    DocumentType.TAX_ID_CARD: (
        ("full name", "name"),
        ("father's name", "fatherName"),
        ("tax identification number", "taxIdNumber"),
        ("date of birth", "dob"),
    ),
    DocumentType.GRADE_TRANSCRIPT: (
        ("student's name", "name"),
        ("seat number", "seatNo"),
        ("mother's name", "motherName"),
        ("divisional board name", "boardName"),
        ("percentage", "percentage"),
    ),
    DocumentType.CASTE_CERTIFICATE: (
        ("caste name", "casteName"),
    ),
    DocumentType.RESIDENCY_CERTIFICATE: (
        ("district name", "district"),
        ("serial number", "serialNo"),
        ("issue date", "issueDate"),
        ("state", "state"),
        ("territory", "territory"),
    ),
}

# Tags used by earlier clients of the upload API
DOC_TYPE_ALIASES: Dict[str, DocumentType] = {
    "aadhar": DocumentType.IDENTITY_CARD,
    "pan": DocumentType.TAX_ID_CARD,
    "marksheet-10th": DocumentType.GRADE_TRANSCRIPT,
    "domicile-certificate": DocumentType.RESIDENCY_CERTIFICATE,
}

_VALID_TAG = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")


def is_well_formed_tag(tag: Optional[str]) -> bool:
    return bool(tag) and bool(_VALID_TAG.match(tag.strip()))


def resolve_document_type(tag: Optional[str]) -> Optional[DocumentType]:
    """
    Map a caller-supplied tag onto a DocumentType.
    Case-insensitive, '_' and '-' are interchangeable, legacy aliases accepted.
    Returns None for unrecognized tags.
    """
    if not tag:
        return None
    key = tag.strip().lower().replace("_", "-")
    if key in DOC_TYPE_ALIASES:
        return DOC_TYPE_ALIASES[key]
    try:
        return DocumentType(key)
    except ValueError:
        return None


def expected_fields(doc_type: str) -> Tuple[str, ...]:
    resolved = resolve_document_type(doc_type)
    if resolved is None:
        return ()
    return tuple(key for _, key in DOCUMENT_FIELDS[resolved])


def _fields_clause(fields: Tuple[Tuple[str, str], ...]) -> str:
    parts = [f"{description} as '{key}'" for description, key in fields]
    if len(parts) == 1:
        return parts[0] + "."
    return ", ".join(parts[:-1]) + ", and " + parts[-1] + "."


def build_prompt(doc_type: str) -> str:
    """
    Build the extraction instruction for one document type.
    Unrecognized types fall back to a generic name/numbers/dates clause.
    """
    resolved = resolve_document_type(doc_type)
    if resolved is None:
        return BASE_PROMPT + GENERIC_FIELDS_CLAUSE
    return BASE_PROMPT + _fields_clause(DOCUMENT_FIELDS[resolved])
