# ============================================================================
# TEST: Document Classifier (keywords)
# ============================================================================

import pytest

from document_intake.classifiers import DocumentClassifier
from document_intake.constants import DocumentType


def test_document_classifier(sample_referral_text, sample_lab_text, sample_intake_text):
    """Test keyword classification of the sample documents"""
    print("=" * 70)
    print("TEST: Document Classifier")
    print("=" * 70)

    classifier = DocumentClassifier()
    print("✓ Document Classifier initialized")

    assert classifier.classify(sample_referral_text) == DocumentType.REFERRAL
    print("✓ Referral letter classified")

    assert classifier.classify(sample_lab_text) == DocumentType.LAB_RESULT
    print("✓ Lab report classified")

    assert classifier.classify(sample_intake_text) == DocumentType.INTAKE_FORM
    print("✓ Intake form classified")

    print("\n✅ Document classifier test PASSED\n")


def test_referral_checked_before_lab():
    text = "Referral for glucose review, see attached laboratory values"
    assert DocumentClassifier().classify(text) == DocumentType.REFERRAL


@pytest.mark.parametrize("text", ["", None, "Grocery list: apples, bread"])
def test_unknown(text):
    assert DocumentClassifier().classify(text) == DocumentType.UNKNOWN


def test_custom_rules():
    classifier = DocumentClassifier(rules=[(DocumentType.LAB_RESULT, ("panel",))])

    assert classifier.classify("Metabolic PANEL") == DocumentType.LAB_RESULT
    assert classifier.classify("referral") == DocumentType.UNKNOWN


@pytest.mark.parametrize("value,expected", [
    ("referral", DocumentType.REFERRAL),
    (" LAB_RESULT ", DocumentType.LAB_RESULT),
    (DocumentType.INTAKE_FORM, DocumentType.INTAKE_FORM),
    ("radiology", DocumentType.UNKNOWN),
    (None, DocumentType.UNKNOWN),
])
def test_document_type_parse(value, expected):
    assert DocumentType.parse(value) == expected
