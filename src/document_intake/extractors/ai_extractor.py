# ============================================================================
# src/document_intake/extractors/ai_extractor.py
# ============================================================================
"""
AI Field Extractor

Optional LLM pass over OCR text, run before the rule-based extractor.
Talks to a local Ollama server (/api/generate, JSON mode) and parses the
reply with json_repair.

Returns patient identity + referral metadata with one overall confidence.
Disabled in config -> create_ai_extractor() returns None, which callers
treat as a normal condition.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp
from json_repair import repair_json

from ..config import ai_settings, AISettings
from ..constants import DocumentType
from ..core.context import (
    CandidateField,
    ExtractedPatientData,
    ExtractedReferralData,
    ExtractionBundle,
    ExtractionMethod,
)
from ..utils.exceptions import AIExtractionError
from .normalizers import normalize_date, normalize_phone, normalize_gender

# Confidence when the model leaves it out
DEFAULT_AI_CONFIDENCE = 0.8

PATIENT_KEYS = ("first_name", "last_name", "date_of_birth", "phone", "gender")
REFERRAL_KEYS = ("referring_physician", "referring_facility", "reason_for_referral")

_NORMALIZERS = {
    "date_of_birth": normalize_date,
    "phone": normalize_phone,
    "gender": normalize_gender,
}

EXTRACTION_PROMPT = '''You are analyzing OCR text from a medical referral letter. Extract the following information if present.

IMPORTANT: The text may have OCR errors. Use context clues to identify the correct information.

OCR TEXT:
"""
{text}
"""

Extract and return a JSON object with this exact structure:
{{
  "patient": {{
    "first_name": "the patient's first/given name or null if not found",
    "last_name": "the patient's last/family name or null if not found",
    "date_of_birth": "date of birth in YYYY-MM-DD format or null if not found",
    "phone": "phone number or null if not found",
    "gender": "male, female, or null if not found"
  }},
  "referral": {{
    "referring_physician": "name of the referring doctor or null",
    "referring_facility": "hospital/clinic name or null",
    "reason_for_referral": "why the patient is being referred (brief summary) or null"
  }},
  "confidence": 0.0 to 1.0 indicating how confident you are in the extraction
}}

Common patterns in referral letters:
- "Re: [Patient Name]" at the top
- "Patient: [Name]"
- "DOB: [date]" or "Date of Birth: [date]"
- "Dear Dr. [Name]" indicates the receiving physician, NOT the referring one
- The signature/letterhead usually indicates the referring physician
- Look for patterns like "I am referring", "I would be grateful if you could see"

Return ONLY the JSON object, no other text.'''


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.lower() in ("null", "none", "n/a"):
        return None
    return value


@dataclass
class AIExtraction:
    """Parsed model output."""
    patient: Dict[str, Optional[str]] = field(default_factory=dict)
    referral: Dict[str, Optional[str]] = field(default_factory=dict)
    confidence: float = 0.0

    @property
    def has_identity(self) -> bool:
        return bool(self.patient.get("first_name") or self.patient.get("last_name"))

    @classmethod
    def from_response(cls, parsed: Dict[str, Any]) -> "AIExtraction":
        patient = parsed.get("patient") or {}
        referral = parsed.get("referral") or {}
        confidence = parsed.get("confidence")
        try:
            confidence = float(confidence) if confidence is not None else DEFAULT_AI_CONFIDENCE
        except (TypeError, ValueError):
            confidence = DEFAULT_AI_CONFIDENCE

        return cls(
            patient={key: _clean(patient.get(key)) for key in PATIENT_KEYS},
            referral={key: _clean(referral.get(key)) for key in REFERRAL_KEYS},
            confidence=min(max(confidence, 0.0), 1.0),
        )

    def to_bundle(self, document_type=None) -> ExtractionBundle:
        """
        Express the model output as candidate fields.

        Every field carries the overall model confidence. Referral data is
        attached for referrals and when the type is not known.
        """
        def candidates(values: Dict[str, Optional[str]]) -> Dict[str, CandidateField]:
            result = {}
            for name, value in values.items():
                if not value:
                    continue
                normalizer = _NORMALIZERS.get(name)
                result[name] = CandidateField(
                    field_name=name,
                    value=normalizer(value) if normalizer else value,
                    confidence=self.confidence,
                    match_context="AI extraction",
                )
            return result

        doc_type = DocumentType.parse(document_type) if document_type is not None else DocumentType.REFERRAL
        referral_data = None
        if doc_type in (DocumentType.REFERRAL, DocumentType.UNKNOWN):
            referral_data = ExtractedReferralData(**candidates(self.referral))

        return ExtractionBundle(
            patient_data=ExtractedPatientData(**candidates(self.patient)),
            referral_data=referral_data,
            method=ExtractionMethod.AI,
            confidence=self.confidence,
        )


class AIExtractor:
    """
    Ollama-backed field extractor.

    Config (AISettings):
        AI_HOST: Ollama server URL
        AI_MODEL: model name
        AI_TIMEOUT: per-request timeout in seconds
        AI_MAX_TOKENS / AI_TEMPERATURE: generation options
    """

    def __init__(self, settings: Optional[AISettings] = None):
        self.settings = settings or ai_settings
        self.host = self.settings.AI_HOST.rstrip("/")
        self.model = self.settings.AI_MODEL
        self.logger = logging.getLogger(__name__)

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        current_loop = asyncio.get_running_loop()
        if self._session is None or self._session.closed or self._session_loop is not current_loop:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=30)
            )
            self._session_loop = current_loop
        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def generate(self, prompt: str) -> str:
        session = await self._get_session()
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {
                "num_predict": self.settings.AI_MAX_TOKENS,
                "temperature": self.settings.AI_TEMPERATURE,
            },
        }

        async def _do_request():
            async with session.post(f"{self.host}/api/generate", json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise AIExtractionError(f"Ollama error ({response.status}): {error_text}")
                return await response.json()

        data = await asyncio.wait_for(_do_request(), timeout=self.settings.AI_TIMEOUT)
        return (data.get("response") or "").strip()

    async def extract(self, text: str) -> AIExtraction:
        """
        Ask the model for identity and referral fields.

        Raises:
            AIExtractionError: server unreachable, timed out, or reply not a JSON object
        """
        try:
            response_text = await self.generate(EXTRACTION_PROMPT.format(text=text))
        except AIExtractionError:
            raise
        except asyncio.TimeoutError as e:
            raise AIExtractionError(f"AI request timed out after {self.settings.AI_TIMEOUT}s") from e
        except aiohttp.ClientError as e:
            raise AIExtractionError(f"Cannot reach AI server at {self.host}: {e}") from e

        parsed = repair_json(response_text, return_objects=True) if response_text else None
        if not isinstance(parsed, dict):
            raise AIExtractionError("AI response was not a JSON object")

        extraction = AIExtraction.from_response(parsed)
        self.logger.info(
            f"AI extraction done (confidence {extraction.confidence:.2f}, "
            f"identity {'found' if extraction.has_identity else 'missing'})"
        )
        return extraction


def create_ai_extractor(settings: Optional[AISettings] = None) -> Optional[AIExtractor]:
    """AIExtractor when enabled in settings, otherwise None."""
    settings = settings or ai_settings
    if not settings.AI_EXTRACTION_ENABLED:
        return None
    return AIExtractor(settings)
