# ============================================================================
# tests/unit/test_ai_extractor.py
# ============================================================================
"""
Unit tests for the AI field extractor (no server required)
"""

import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from document_intake.config import AISettings
from document_intake.constants import DocumentType
from document_intake.core.context import ExtractionMethod
from document_intake.extractors import AIExtraction, AIExtractor, create_ai_extractor
from document_intake.extractors.ai_extractor import DEFAULT_AI_CONFIDENCE, EXTRACTION_PROMPT
from document_intake.utils.exceptions import AIExtractionError


@pytest.fixture
def extractor():
    return AIExtractor(AISettings(AI_EXTRACTION_ENABLED=True, AI_HOST="http://ollama.test:11434/"))


class TestAIExtraction:

    def test_from_response_cleans_placeholders(self):
        extraction = AIExtraction.from_response({
            "patient": {"first_name": " Jane ", "last_name": "null", "phone": "N/A"},
            "referral": {"referring_physician": "Dr. Chen"},
            "confidence": 0.92,
        })

        assert extraction.patient["first_name"] == "Jane"
        assert extraction.patient["last_name"] is None
        assert extraction.patient["phone"] is None
        assert extraction.referral["referring_physician"] == "Dr. Chen"
        assert extraction.confidence == 0.92
        assert extraction.has_identity

    def test_confidence_defaults_and_clamps(self):
        assert AIExtraction.from_response({}).confidence == DEFAULT_AI_CONFIDENCE
        assert AIExtraction.from_response({"confidence": "high"}).confidence == DEFAULT_AI_CONFIDENCE
        assert AIExtraction.from_response({"confidence": 7}).confidence == 1.0

    def test_no_identity(self):
        extraction = AIExtraction.from_response({"patient": {"date_of_birth": "1980-05-15"}})
        assert not extraction.has_identity

    def test_to_bundle_normalizes(self):
        extraction = AIExtraction.from_response({
            "patient": {
                "first_name": "Jane",
                "last_name": "Doe",
                "date_of_birth": "05/15/1980",
                "phone": "555 123 4567",
                "gender": "F",
            },
            "referral": {"reason_for_referral": "Migraine"},
            "confidence": 0.6,
        })

        bundle = extraction.to_bundle(DocumentType.REFERRAL)

        assert bundle.method == ExtractionMethod.AI
        assert bundle.confidence == 0.6
        assert bundle.patient_data.date_of_birth.value == "1980-05-15"
        assert bundle.patient_data.phone.value == "(555) 123-4567"
        assert bundle.patient_data.gender.value == "female"
        assert bundle.patient_data.first_name.confidence == 0.6
        assert bundle.referral_data.reason_for_referral.value == "Migraine"
        assert bundle.lab_data is None

    def test_to_bundle_referral_data_by_type(self):
        extraction = AIExtraction.from_response({"patient": {"first_name": "Jane"}})

        assert extraction.to_bundle(DocumentType.UNKNOWN).referral_data is not None
        assert extraction.to_bundle(DocumentType.INTAKE_FORM).referral_data is None
        assert extraction.to_bundle(DocumentType.LAB_RESULT).referral_data is None


class TestAIExtractor:

    def test_host_trailing_slash_removed(self, extractor):
        assert extractor.host == "http://ollama.test:11434"

    @pytest.mark.asyncio
    async def test_extract_repairs_json(self, extractor):
        reply = '{"patient": {"first_name": "Jane", "last_name": "Doe",}, "confidence": 0.85'
        with patch.object(extractor, "generate", AsyncMock(return_value=reply)) as generate:
            extraction = await extractor.extract("Re: Jane Doe")

        assert extraction.patient["first_name"] == "Jane"
        assert extraction.patient["last_name"] == "Doe"
        assert extraction.confidence == 0.85
        assert extraction.has_identity

        prompt = generate.await_args.args[0]
        assert "Re: Jane Doe" in prompt
        assert prompt == EXTRACTION_PROMPT.format(text="Re: Jane Doe")

    @pytest.mark.asyncio
    async def test_non_object_reply(self, extractor):
        with patch.object(extractor, "generate", AsyncMock(return_value="[1, 2, 3]")):
            with pytest.raises(AIExtractionError):
                await extractor.extract("text")

    @pytest.mark.asyncio
    async def test_empty_reply(self, extractor):
        with patch.object(extractor, "generate", AsyncMock(return_value="")):
            with pytest.raises(AIExtractionError):
                await extractor.extract("text")

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self, extractor):
        with patch.object(extractor, "generate", AsyncMock(side_effect=asyncio.TimeoutError())):
            with pytest.raises(AIExtractionError, match="timed out"):
                await extractor.extract("text")

    @pytest.mark.asyncio
    async def test_connection_error_wrapped(self, extractor):
        error = aiohttp.ClientConnectionError("refused")
        with patch.object(extractor, "generate", AsyncMock(side_effect=error)):
            with pytest.raises(AIExtractionError, match="Cannot reach"):
                await extractor.extract("text")

    @pytest.mark.asyncio
    async def test_close_without_session(self, extractor):
        await extractor.close()
        assert extractor._session is None


def test_factory_respects_enabled_flag():
    assert create_ai_extractor(AISettings(AI_EXTRACTION_ENABLED=False)) is None

    extractor = create_ai_extractor(AISettings(AI_EXTRACTION_ENABLED=True, AI_MODEL="tiny"))
    assert isinstance(extractor, AIExtractor)
    assert extractor.model == "tiny"
