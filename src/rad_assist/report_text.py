"""Text analysis over scraped report content."""

from __future__ import annotations

import logging
import re

LOGGER = logging.getLogger(__name__)

SECTION_HEADERS = (
    "TECHNIQUE",
    "FINDINGS",
    "CLINICAL HISTORY",
    "COMPARISON",
    "EXAM",
    "PROCEDURE",
    "INDICATION",
    "CONCLUSION",
    "RECOMMENDATION",
    "SIGNATURE",
    "ELECTRONICALLY SIGNED",
    "IMPRESSION",
)

BODY_PARTS = (
    "HEAD", "BRAIN", "NECK", "CERVICAL", "C-SPINE", "CSPINE",
    "CHEST", "THORAX", "THORACIC", "T-SPINE", "TSPINE", "LUNG",
    "ABDOMEN", "ABDOMINAL", "PELVIS", "PELVIC", "LUMBAR", "L-SPINE", "LSPINE",
    "SPINE", "EXTREMITY", "UPPER EXTREMITY", "LOWER EXTREMITY",
    "ARM", "LEG", "SHOULDER", "HIP", "KNEE", "ANKLE", "WRIST", "ELBOW",
    "FOOT", "HAND", "FINGER", "TOE",
    "CARDIAC", "HEART", "CORONARY", "CTA", "MRA",
    "ANGIOGRAPHY", "ANGIOGRAM", "VENOGRAM",
    "PULMONARY VEINS", "PULMONARY ARTERIES", "PULMONARY EMBOLISM", "PE PROTOCOL",
    "AORTA", "AORTIC", "RUNOFF", "CAROTID",
    "SINUS", "ORBIT", "FACE", "FACIAL", "MAXILLOFACIAL", "TEMPORAL", "IAC",
    "RENAL", "KIDNEY", "UROGRAM", "ENTEROGRAPHY", "LIVER", "PANCREAS",
)

BODY_PART_ALIASES = {
    "ABDOMINAL": "ABDOMEN",
    "PELVIC": "PELVIS",
    "C-SPINE": "CERVICAL",
    "CSPINE": "CERVICAL",
    "T-SPINE": "THORACIC",
    "TSPINE": "THORACIC",
    "L-SPINE": "LUMBAR",
    "LSPINE": "LUMBAR",
    "THORAX": "CHEST",
    "LUNG": "CHEST",
    "BRAIN": "HEAD",
    "ANGIOGRAPHY": "CTA",
    "ANGIOGRAM": "CTA",
    "AORTIC": "AORTA",
    "FACIAL": "FACE",
    "MAXILLOFACIAL": "FACE",
}

FEMALE_ONLY_TERMS = (
    "uterus", "uterine", "endometrium", "endometrial", "ovary", "ovaries", "ovarian",
    "fallopian", "cervix", "vagina", "vaginal",
)
MALE_ONLY_TERMS = (
    "prostate", "prostatic", "testis", "testes", "testicle", "testicular",
    "scrotum", "scrotal", "seminal vesicle", "seminal vesicles", "penis", "penile",
)

STROKE_KEYWORDS = (
    "stroke", "CVA", "TIA", "hemiparesis", "hemiplegia", "aphasia",
    "dysarthria", "facial droop", "weakness", "numbness", "code stroke",
    "NIH stroke scale", "NIHSS",
)

_WHITESPACE = re.compile(r"[\r\n\t ]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\u200b\ufeff]")


def _section_pattern(header: str) -> re.Pattern[str]:
    others = "|".join(re.escape(h) for h in SECTION_HEADERS if h != header)
    return re.compile(
        rf"{re.escape(header)}[:\s]*\n?(.+?)(?=\n\s*(?:{others})\s*[:\n]|$)",
        re.DOTALL | re.IGNORECASE,
    )


_IMPRESSION_PATTERN = _section_pattern("IMPRESSION")
_CLINICAL_HISTORY_PATTERN = _section_pattern("CLINICAL HISTORY")


def clean_text(text: str) -> str:
    return _WHITESPACE.sub(" ", _CONTROL_CHARS.sub("", text)).strip()


def format_numbered_items(text: str) -> str:
    """Break before "2.", "3.", ... when the text is a numbered list.

    Only the next expected number breaks, so "2.5 cm" inside item 1 stays put.
    """
    if not re.match(r"^\s*1\.", text):
        return text

    out: list[str] = []
    expected = 1
    i = 0
    while i < len(text):
        marker = f"{expected}."
        if text.startswith(marker, i):
            end = i + len(marker)
            if end >= len(text) or text[end].isspace() or text[end].isalpha():
                if expected > 1:
                    out.append("\n")
                out.append(marker)
                i = end
                expected += 1
                continue
        out.append(text[i])
        i += 1
    return "".join(out)


def extract_impression(report_text: str | None) -> str | None:
    if not report_text or not report_text.strip():
        return None
    if "impression" not in report_text.lower():
        return None

    match = _IMPRESSION_PATTERN.search(report_text)
    if match is None:
        return None

    content = clean_text(match.group(1))
    if not content:
        return None
    return format_numbered_items(content)


def extract_clinical_history(report_text: str | None) -> str | None:
    if not report_text:
        return None
    match = _CLINICAL_HISTORY_PATTERN.search(report_text)
    if match is None:
        return None
    content = clean_text(match.group(1))
    return content or None


def has_clinical_history_section(report_text: str | None) -> bool:
    return bool(report_text) and "clinical history" in report_text.lower()


def has_complete_report_marker(report_text: str | None) -> bool:
    # The reporting app generates the impression last, so its presence means the text has settled.
    return extract_impression(report_text) is not None


def extract_body_parts(text: str | None) -> set[str]:
    if not text or not text.strip():
        return set()

    upper = text.upper()
    parts: set[str] = set()
    if "CT ANGIOGRAPHY" in upper or "CT ANGIO" in upper:
        parts.add("CTA")
    if "MR ANGIOGRAPHY" in upper or "MR ANGIO" in upper:
        parts.add("MRA")

    for part in BODY_PARTS:
        if part in upper:
            parts.add(BODY_PART_ALIASES.get(part, part))
    return parts


def body_parts_match(description: str | None, template_name: str | None) -> bool:
    """True unless both texts name body parts and the sets differ."""
    description_parts = extract_body_parts(description)
    template_parts = extract_body_parts(template_name)
    if not description_parts or not template_parts:
        return True

    if description_parts == template_parts:
        return True
    LOGGER.debug(
        "Template mismatch: description %s vs template %s",
        sorted(description_parts),
        sorted(template_parts),
    )
    return False


def _find_terms(text: str, terms: tuple[str, ...]) -> list[str]:
    found = []
    for term in terms:
        if re.search(rf"\b{re.escape(term)}\b", text, re.IGNORECASE):
            found.append(term)
    return found


def check_gender_mismatch(report_text: str | None, patient_gender: str | None) -> list[str]:
    """Terms in the report that cannot apply to the patient's recorded sex."""
    if not report_text or not patient_gender:
        return []

    gender = patient_gender.strip().lower()
    if gender.startswith("f"):
        return _find_terms(report_text, MALE_ONLY_TERMS)
    if gender.startswith("m"):
        return _find_terms(report_text, FEMALE_ONLY_TERMS)
    return []


def contains_stroke_keywords(text: str | None) -> bool:
    if not text:
        return False
    return bool(_find_terms(text, STROKE_KEYWORDS))


__all__ = [
    "body_parts_match",
    "check_gender_mismatch",
    "clean_text",
    "contains_stroke_keywords",
    "extract_body_parts",
    "extract_clinical_history",
    "extract_impression",
    "format_numbered_items",
    "has_clinical_history_section",
    "has_complete_report_marker",
]
