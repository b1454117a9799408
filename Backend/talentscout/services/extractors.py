"""
Candidate extraction from uploaded documents.

Two strategies are available: a model-based extractor (OpenAI, JSON output)
and a pattern-based one that understands CSV, JSON and plain-text resumes.
ChainedExtractor tries the first and falls back to the second. Binary formats
(PDF, Word) are rejected; turning their bytes into text is not handled here.
"""

import csv
import io
import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from talentscout.core.errors import CandidateValidationError, ExtractionError
from talentscout.core.models import CandidateRecord, RawDocument

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS = frozenset({'.pdf', '.doc', '.docx', '.odt', '.rtf', '.png', '.jpg', '.jpeg'})
MAX_PROMPT_CHARS = 120000

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(r"(\+?\d[\d\s().\-]{7,}\d)")
LINKEDIN_RE = re.compile(r"(?:https?://)?(?:[a-z]{2,3}\.)?linkedin\.com/in/[A-Za-z0-9_\-%]+/?", re.IGNORECASE)
LABEL_RE = re.compile(r"^\s*([A-Za-z ]{2,20})\s*:\s*(.+)$")

# Header spellings accepted in CSV uploads, mapped to record fields
CSV_HEADERS = {
    'name': 'name', 'full name': 'name', 'candidate name': 'name', 'candidate': 'name',
    'email': 'email', 'e-mail': 'email', 'email address': 'email',
    'phone': 'phone', 'mobile': 'phone', 'phone number': 'phone',
    'title': 'title', 'job title': 'title', 'current title': 'title', 'position': 'title', 'role': 'title',
    'company': 'company', 'current company': 'company', 'employer': 'company', 'organization': 'company',
    'location': 'location', 'city': 'location',
    'linkedin': 'linkedin_url', 'linkedin url': 'linkedin_url', 'linkedin profile': 'linkedin_url',
    'profile url': 'linkedin_url',
    'skills': 'skills', 'key skills': 'skills',
    'summary': 'summary', 'about': 'summary',
}

# Labels recognised in plain-text resumes
TEXT_LABELS = {
    'title': 'title', 'current title': 'title', 'position': 'title', 'role': 'title',
    'company': 'company', 'current company': 'company', 'employer': 'company',
    'location': 'location', 'city': 'location',
    'skills': 'skills', 'key skills': 'skills', 'technical skills': 'skills',
    'summary': 'summary', 'about': 'summary',
}


def decode_text(document: RawDocument) -> str:
    """Decode a text document, rejecting binary formats."""
    suffix = Path(document.file_name).suffix.lower()
    if suffix in BINARY_EXTENSIONS or b"\x00" in document.content[:4096]:
        raise ExtractionError(f"Unsupported binary document: {document.file_name}")
    text = document.content.decode("utf-8", errors="ignore").lstrip("\ufeff")
    if not text.strip():
        raise ExtractionError(f"No text could be extracted from {document.file_name}")
    return text


def records_from_mappings(items: List[Any], source_file: str) -> List[CandidateRecord]:
    """Validate loosely typed candidate objects, skipping the ones without a name."""
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        data = dict(item)
        data.setdefault("sourceFile", source_file)
        try:
            records.append(CandidateRecord.from_mapping(data))
        except CandidateValidationError as e:
            logger.warning("Skipping invalid candidate in %s: %s", source_file, e)
    return records


class Extractor(ABC):
    """Turns one uploaded document into zero or more candidate records."""

    @abstractmethod
    async def extract(self, document: RawDocument) -> List[CandidateRecord]:
        ...


class PrimaryExtractor(Extractor):
    """Model-based extraction through the OpenAI chat completions API."""

    def __init__(self, api_key: str, model: str = "gpt-4o", client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key)

    def _build_prompt(self, text: str) -> str:
        return f"""You are an expert resume parser. Extract every candidate described in the document below.

Return strictly valid JSON: {{"candidates": [ ... ]}} where each candidate has
- name: string (full name)
- email, phone, title, company, location, linkedinUrl, summary: string or null
- skills: array of strings
- workHistory: array of {{"title", "company", "startDate", "endDate"}}; endDate is "present" for the current role

Rules:
- Use nulls or empty arrays where information is missing.
- Do not invent data; infer conservatively from the text.

Document:
---
{text[:MAX_PROMPT_CHARS]}
---"""

    async def extract(self, document: RawDocument) -> List[CandidateRecord]:
        text = decode_text(document)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": self._build_prompt(text)}],
                temperature=0.1,
                response_format={"type": "json_object"},
            )
            content = (response.choices[0].message.content or "").strip()
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Model returned malformed JSON for {document.file_name}") from e
        except Exception as e:
            logger.warning("Model extraction failed for %s: %s", document.file_name, e)
            raise ExtractionError(f"Model extraction failed for {document.file_name}: {e}") from e

        items = data.get("candidates") if isinstance(data, dict) and "candidates" in data else [data]
        if not isinstance(items, list):
            raise ExtractionError(f"Model returned an unexpected shape for {document.file_name}")
        records = records_from_mappings(items, document.file_name)
        logger.info("Model extracted %d candidates from %s", len(records), document.file_name)
        return records


class FallbackExtractor(Extractor):
    """Pattern-based extraction for CSV, JSON and plain-text documents."""

    async def extract(self, document: RawDocument) -> List[CandidateRecord]:
        text = decode_text(document)
        suffix = Path(document.file_name).suffix.lower()
        content_type = (document.content_type or "").lower()

        if suffix == ".csv" or "csv" in content_type:
            records = self.from_csv(text, document.file_name)
        elif suffix == ".json" or "json" in content_type:
            records = self.from_json(text, document.file_name)
        else:
            record = self.from_text(text, document.file_name)
            records = [record] if record is not None else []

        if not records:
            raise ExtractionError(f"No candidate records found in {document.file_name}")
        return records

    @staticmethod
    def from_csv(text: str, source_file: str) -> List[CandidateRecord]:
        reader = csv.DictReader(io.StringIO(text))
        rows = []
        for row in reader:
            data: Dict[str, Any] = {}
            for header, value in row.items():
                if header is None:
                    continue
                field_name = CSV_HEADERS.get(header.strip().lower())
                if field_name and value and field_name not in data:
                    data[field_name] = value
            rows.append(data)
        return records_from_mappings(rows, source_file)

    @staticmethod
    def from_json(text: str, source_file: str) -> List[CandidateRecord]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Invalid JSON in {source_file}: {e}") from e
        if isinstance(data, dict):
            data = data.get("candidates", [data])
        if not isinstance(data, list):
            raise ExtractionError(f"Unexpected JSON shape in {source_file}")
        return records_from_mappings(data, source_file)

    @staticmethod
    def from_text(text: str, source_file: str) -> Optional[CandidateRecord]:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        if not lines:
            return None

        data: Dict[str, Any] = {"source_file": source_file}
        # the name is the first line that is neither contact data nor a labelled field
        for line in lines:
            if EMAIL_RE.search(line) or LINKEDIN_RE.search(line) or PHONE_RE.fullmatch(line):
                continue
            label = LABEL_RE.match(line)
            if label is None:
                data["name"] = line
                break
            if label.group(1).strip().lower() in ('name', 'full name'):
                data["name"] = label.group(2).strip()
                break

        email = EMAIL_RE.search(text)
        if email:
            data["email"] = email.group(0)
        phone = PHONE_RE.search(text)
        if phone:
            data["phone"] = phone.group(1).strip()
        linkedin = LINKEDIN_RE.search(text)
        if linkedin:
            url = linkedin.group(0).rstrip('/')
            data["linkedin_url"] = url if url.lower().startswith("http") else f"https://{url}"

        for line in lines:
            match = LABEL_RE.match(line)
            if not match:
                continue
            field_name = TEXT_LABELS.get(match.group(1).strip().lower())
            if field_name and field_name not in data:
                data[field_name] = match.group(2).strip()

        if "name" not in data:
            return None
        try:
            return CandidateRecord.from_mapping(data)
        except CandidateValidationError as e:
            logger.warning("Pattern extraction produced an invalid record for %s: %s", source_file, e)
            return None


class ChainedExtractor(Extractor):
    """Try the primary extractor, fall back when it fails or finds nothing."""

    def __init__(self, primary: Optional[Extractor], fallback: Extractor):
        self.primary = primary
        self.fallback = fallback

    async def extract(self, document: RawDocument) -> List[CandidateRecord]:
        if self.primary is not None:
            try:
                records = await self.primary.extract(document)
            except ExtractionError as e:
                logger.info("Primary extraction failed for %s (%s); using pattern extraction",
                            document.file_name, e)
            else:
                if records:
                    return records
                logger.info("Primary extraction found nothing in %s; using pattern extraction", document.file_name)
        return await self.fallback.extract(document)
