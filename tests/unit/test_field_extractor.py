# ============================================================================
# tests/unit/test_field_extractor.py
# ============================================================================
"""
Unit tests for the rule-based field extraction engine
"""

from dataclasses import replace

import pytest

from document_intake.constants import DocumentType
from document_intake.core.context import ExtractionMethod
from document_intake.extractors import FieldExtractionEngine, default_pattern_library, match_context


@pytest.fixture
def engine():
    return FieldExtractionEngine()


class TestNameCascade:

    def test_re_header_beats_patient_label(self, engine):
        text = "Patient: John Smith\nRe: Jane Doe\n"
        data = engine.extract_patient_data(text)

        assert data.first_name.value == "Jane"
        assert data.last_name.value == "Doe"
        assert data.first_name.confidence == 0.95

    def test_patient_label(self, engine):
        data = engine.extract_patient_data("Patient: JOHN SMITH\nDOB: 01/02/1970")

        assert data.first_name.value == "John"
        assert data.last_name.value == "Smith"
        assert data.first_name.confidence == 0.95

    def test_dear_doctor_letter(self, engine):
        text = "Dear Dr. Adams, I am referring Mr. John Smith for assessment of his knee."
        data = engine.extract_patient_data(text)

        assert (data.first_name.value, data.last_name.value) == ("John", "Smith")
        assert data.last_name.confidence == 0.90

    def test_referring_phrase(self, engine):
        data = engine.extract_patient_data("We are referring John Smith to your clinic.")

        assert (data.first_name.value, data.last_name.value) == ("John", "Smith")
        assert data.first_name.confidence == 0.85

    def test_seeing_phrase(self, engine):
        data = engine.extract_patient_data("Thank you for seeing Mrs. Anne Baker today.")

        assert (data.first_name.value, data.last_name.value) == ("Anne", "Baker")
        assert data.first_name.confidence == 0.85

    def test_all_caps_line(self, engine):
        data = engine.extract_patient_data("JOHN SMITH\n12 Elm Road")

        assert (data.first_name.value, data.last_name.value) == ("John", "Smith")
        assert data.first_name.confidence == 0.70

    def test_all_caps_header_words_excluded(self, engine):
        data = engine.extract_patient_data("REFERRAL LETTER\n")

        assert data.first_name is None
        assert data.last_name is None

    def test_labeled_names_override_cascade(self, engine):
        data = engine.extract_patient_data("Re: Jane Doe\nFirst Name: JANETTE\n")

        assert data.first_name.value == "Janette"
        assert data.first_name.confidence == 0.95
        assert data.last_name.value == "Doe"

    def test_no_name(self, engine):
        data = engine.extract_patient_data("nothing useful here")
        assert data.count() == 0

    def test_empty_cascade_finds_nothing(self):
        patterns = replace(default_pattern_library(), name_cascade=())
        data = FieldExtractionEngine(patterns).extract_patient_data("Re: Jane Doe\n")

        assert data.first_name is None


class TestPatientFields:

    def test_intake_form(self, engine, sample_intake_text):
        data = engine.extract_patient_data(sample_intake_text)

        assert data.first_name.value == "Janet"
        assert data.last_name.value == "Doe"
        assert data.date_of_birth.value == "1980-05-15"
        assert data.gender.value == "female"
        assert data.phone.value == "(555) 987-6543"
        assert data.email.value == "janet.doe@example.com"
        assert data.email.confidence == 0.95
        assert data.address_line1.value == "42 Oak Street"
        assert data.city.value == "Springfield"
        assert data.state.value == "IL"
        assert data.zip.value == "62704"
        assert data.insurance_provider.value == "Blue Cross"
        assert data.insurance_provider.confidence == 0.85
        assert data.insurance_id.value == "BC-998877"
        assert data.emergency_contact_name.value == "John Doe"
        assert data.emergency_contact_phone.value == "(555) 222-3333"

    def test_field_names_are_declared_fields(self, engine, sample_intake_text):
        data = engine.extract_patient_data(sample_intake_text)
        for name, candidate in data.items():
            assert candidate.field_name == name
            assert 0 < candidate.confidence <= 1

    def test_standalone_email_fallback(self, engine):
        data = engine.extract_patient_data("Reach her at JANE@EXAMPLE.ORG any time")

        assert data.email.value == "jane@example.org"
        assert data.email.confidence == 0.8

    def test_bare_insurance_label_fallback(self, engine):
        data = engine.extract_patient_data("Insurance: Aetna\n")

        assert data.insurance_provider.value == "Aetna"
        assert data.insurance_provider.confidence == 0.75

    def test_unparseable_dob_kept_raw(self, engine):
        data = engine.extract_patient_data("DOB: 31/31/1980")
        assert data.date_of_birth.value == "31/31/1980"

    def test_match_context_recorded(self, engine):
        data = engine.extract_patient_data("Some header\nDOB: 05/15/1980\n")
        assert "DOB: 05/15/1980" in data.date_of_birth.match_context
        assert "\n" not in data.date_of_birth.match_context


class TestReferralFields:

    def test_referral_letter(self, engine, sample_referral_text):
        data = engine.extract_referral_data(sample_referral_text)

        assert data.referring_physician.value == "Robert Chen"
        assert data.referring_facility.value == "Riverside Medical Clinic"
        assert data.reason_for_referral.value == "Persistent headaches with visual disturbance"
        assert data.referral_date.value == "2024-03-01"


class TestLabFields:

    def test_lab_report(self, engine, sample_lab_text):
        data = engine.extract_lab_data(sample_lab_text)

        assert data.lab_name.value == "Quest Diagnostics"
        assert data.test_date.value == "2024-03-10"

        rows = {row.test_name: row for row in data.test_results}
        assert rows["GLUCOSE"].value == "105"
        assert rows["GLUCOSE"].unit == "mg/dL"
        assert rows["GLUCOSE"].reference_range == "70-100"
        assert rows["GLUCOSE"].abnormal is True
        assert rows["SODIUM"].value == "140"
        assert rows["SODIUM"].reference_range == "135-145"

    def test_line_without_value_skipped(self, engine):
        data = engine.extract_lab_data("Glucose pending\n")
        assert data.test_results == []


class TestExtractAll:

    def test_referral_type_adds_referral_data(self, engine, sample_referral_text):
        bundle = engine.extract_all(sample_referral_text, DocumentType.REFERRAL)

        assert bundle.method == ExtractionMethod.REGEX
        assert bundle.patient_data.first_name.value == "Jane"
        assert bundle.patient_data.date_of_birth.value == "1980-05-15"
        assert bundle.patient_data.phone.value == "(555) 123-4567"
        assert bundle.referral_data is not None
        assert bundle.lab_data is None

    def test_lab_type_adds_lab_data(self, engine, sample_lab_text):
        bundle = engine.extract_all(sample_lab_text, "lab_result")

        assert bundle.lab_data is not None
        assert bundle.referral_data is None
        assert bundle.patient_data.first_name.value == "Jane"

    @pytest.mark.parametrize("doc_type", ["intake_form", "unknown", "bogus", None])
    def test_other_types_patient_only(self, engine, sample_referral_text, doc_type):
        bundle = engine.extract_all(sample_referral_text, doc_type)

        assert bundle.referral_data is None
        assert bundle.lab_data is None
        assert bundle.patient_data.count() > 0

    def test_empty_text(self, engine):
        bundle = engine.extract_all("", DocumentType.REFERRAL)

        assert bundle.patient_data.count() == 0
        assert bundle.referral_data.count() == 0

    def test_serialized_shape(self, engine, sample_referral_text):
        data = engine.extract_all(sample_referral_text, DocumentType.REFERRAL).to_dict()

        assert data["method"] == "regex"
        assert data["patient_data"]["first_name"]["value"] == "Jane"
        assert data["referral_data"]["referral_date"]["value"] == "2024-03-01"
        assert data["lab_data"] is None


def test_match_context_truncation():
    text = "x" * 200
    context = match_context(text, 100, 10)

    assert context == "..." + "x" * 20 + "..."
    assert match_context("short", 0) == "short"
