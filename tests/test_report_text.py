from rad_assist.report_text import (
    body_parts_match,
    check_gender_mismatch,
    clean_text,
    contains_stroke_keywords,
    extract_body_parts,
    extract_clinical_history,
    extract_impression,
    format_numbered_items,
    has_clinical_history_section,
    has_complete_report_marker,
)

REPORT = """EXAM: CT HEAD WITHOUT CONTRAST
CLINICAL HISTORY: Left sided weakness, rule out stroke.
TECHNIQUE: Axial images of the head.
FINDINGS:
No acute intracranial hemorrhage.
IMPRESSION:
1. No acute intracranial abnormality. 2. Chronic microvascular change measuring 2.5 cm.
ELECTRONICALLY SIGNED: Dr. Example
"""


def test_extract_impression_stops_at_next_section() -> None:
    impression = extract_impression(REPORT)

    assert impression == (
        "1. No acute intracranial abnormality. \n2. Chronic microvascular change measuring 2.5 cm."
    )


def test_extract_impression_missing_section() -> None:
    assert extract_impression("FINDINGS: normal") is None
    assert extract_impression("") is None
    assert extract_impression(None) is None


def test_complete_report_marker_tracks_impression() -> None:
    assert has_complete_report_marker(REPORT) is True
    assert has_complete_report_marker("CLINICAL HISTORY: headache\nFINDINGS: pending") is False


def test_extract_clinical_history() -> None:
    assert extract_clinical_history(REPORT) == "Left sided weakness, rule out stroke."
    assert extract_clinical_history("FINDINGS: none") is None
    assert has_clinical_history_section("clinical history: x") is True
    assert has_clinical_history_section(None) is False


def test_clean_text_strips_control_characters_and_whitespace() -> None:
    assert clean_text("  a\u200b\tb\r\n c  ") == "a b c"


def test_format_numbered_items_ignores_decimals() -> None:
    assert format_numbered_items("1. Mass 2.5 cm. 2. Effusion.") == "1. Mass 2.5 cm. \n2. Effusion."
    assert format_numbered_items("Single finding 2. here") == "Single finding 2. here"


def test_body_parts_normalize_aliases() -> None:
    assert extract_body_parts("CT Abdominal and Pelvic") == {"ABDOMEN", "PELVIS"}
    assert "CTA" in extract_body_parts("CT Angiography Neck")
    assert extract_body_parts(None) == set()


def test_body_parts_match_rules() -> None:
    assert body_parts_match("CT CHEST WITH CONTRAST", "CT Thorax") is True
    assert body_parts_match("CT CHEST", "CT KNEE") is False
    # Unknown on either side counts as a match.
    assert body_parts_match("Outside read", "CT KNEE") is True
    assert body_parts_match(None, None) is True


def test_gender_mismatch_terms() -> None:
    assert check_gender_mismatch("The prostate is enlarged.", "Female") == ["prostate"]
    assert check_gender_mismatch("The uterus and ovaries are normal.", "M") == ["uterus", "ovaries"]
    assert check_gender_mismatch("The prostate is enlarged.", "Male") == []
    assert check_gender_mismatch("The uterus is normal.", None) == []
    assert check_gender_mismatch("The uterus is normal.", "Unknown") == []


def test_gender_mismatch_requires_whole_words() -> None:
    assert check_gender_mismatch("Penicillin allergy.", "Female") == []


def test_stroke_keywords() -> None:
    assert contains_stroke_keywords("Code stroke, left facial droop") is True
    assert contains_stroke_keywords("nihss 4") is True
    assert contains_stroke_keywords("Headache") is False
    assert contains_stroke_keywords(None) is False
