from __future__ import annotations

import logging
import re
from pathlib import Path

from autoapply.core.errors import UnsupportedFormatError
from autoapply.types import ExtractedText, ParsedCVData

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
WORD_MIME_TYPES = frozenset(
    {
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)
MIN_TEXT_CHARS = 50

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
# Stays on one line: horizontal whitespace only.
PHONE_PATTERN = re.compile(r"\+?[\d(][\d \t\-().]{8,}\d")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f\ufffd]")

SKILL_KEYWORDS = (
    "javascript",
    "python",
    "java",
    "react",
    "node",
    "sql",
    "html",
    "css",
    "git",
    "aws",
    "docker",
    "kubernetes",
    "typescript",
    "angular",
    "vue",
    "mongodb",
    "postgresql",
    "mysql",
    "redis",
    "graphql",
    "rest",
    "api",
    "machine learning",
    "data analysis",
    "project management",
    "agile",
    "scrum",
    "leadership",
    "communication",
    "problem solving",
)
EXPERIENCE_KEYWORDS = ("experience", "work history", "employment", "career")
EDUCATION_KEYWORDS = ("education", "qualification", "degree", "university", "college")
SECTION_HEADINGS = ("skills", "experience", "education", "contact", "summary", "objective")

MAX_EXPERIENCE_ENTRIES = 5
MIN_EXPERIENCE_CHARS = 10
MAX_EDUCATION_ENTRIES = 3
MIN_EDUCATION_CHARS = 5

FALLBACK_NAME = "CV Upload"


def parse_cv(file_path: str | Path, mime_type: str, *, min_text_chars: int = MIN_TEXT_CHARS) -> ParsedCVData:
    """Extract and infer CV fields; failures degrade to a stub instead of raising."""
    try:
        logger.info("Parsing CV path=%s mime_type=%s", file_path, mime_type)
        extracted = extract_text(file_path, mime_type, min_text_chars=min_text_chars)
        if extracted.is_placeholder:
            return ParsedCVData(
                skills=[],
                experience=[],
                education=[],
                summary=" ".join(extracted.text.splitlines()),
            )
        return infer_fields(extracted.text)
    except Exception as exc:
        logger.warning("CV parsing failed path=%s: %s", file_path, exc)
        return degraded_cv_data(str(exc) or exc.__class__.__name__)


def degraded_cv_data(reason: str) -> ParsedCVData:
    return ParsedCVData(
        name=FALLBACK_NAME,
        skills=[],
        experience=[],
        education=[],
        summary=f"CV parsing failed: {reason}",
    )


def extract_text(file_path: str | Path, mime_type: str, *, min_text_chars: int = MIN_TEXT_CHARS) -> ExtractedText:
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    if mime_type == PDF_MIME_TYPE:
        kind = "PDF"
    elif mime_type in WORD_MIME_TYPES:
        kind = "Word"
    else:
        raise UnsupportedFormatError(mime_type)

    data = path.read_bytes()
    text = decode_text(data)
    logger.debug("%s text decoded path=%s bytes=%d chars=%d", kind, path, len(data), len(text))

    too_short = len(text.strip()) < min_text_chars
    if kind == "Word" and " " not in text:
        too_short = True
    if too_short:
        label = "PDF file" if kind == "PDF" else "Word document"
        placeholder = (
            f"{label} uploaded: {path.name}\n"
            f"File size: {len(data)} bytes\n"
            f"This is a {kind} document that requires specialized parsing."
        )
        return ExtractedText(text=placeholder, is_placeholder=True)
    return ExtractedText(text=text)


def decode_text(data: bytes) -> str:
    return _CONTROL_CHARS.sub("", data.decode("utf-8", errors="replace"))


def infer_fields(text: str) -> ParsedCVData:
    email = _first_match(EMAIL_PATTERN, text)
    phone = _first_match(PHONE_PATTERN, text)
    skills = extract_skills(text)
    experience = extract_section_entries(
        text, EXPERIENCE_KEYWORDS, min_chars=MIN_EXPERIENCE_CHARS, max_entries=MAX_EXPERIENCE_ENTRIES
    )
    education = extract_section_entries(
        text, EDUCATION_KEYWORDS, min_chars=MIN_EDUCATION_CHARS, max_entries=MAX_EDUCATION_ENTRIES
    )

    summary = (
        f"CV contains {len(skills)} identified skills, "
        f"{len(experience or [])} work experiences, and "
        f"{len(education or [])} education entries."
    )
    return ParsedCVData(
        name=guess_name(text),
        email=email,
        phone=phone,
        skills=skills,
        experience=experience,
        education=education,
        summary=summary,
    )


def guess_name(text: str) -> str | None:
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if EMAIL_PATTERN.search(line) or PHONE_PATTERN.search(line):
            continue
        if len(line) < 50 and len(line.split(" ")) <= 4:
            return line
    return None


def extract_skills(text: str) -> list[str]:
    lowered = text.lower()
    return [skill for skill in SKILL_KEYWORDS if skill in lowered]


def extract_section_entries(
    text: str,
    keywords: tuple[str, ...],
    *,
    min_chars: int,
    max_entries: int,
) -> list[str] | None:
    section = extract_section(text, keywords)
    if section is None:
        return None
    entries = [line.strip() for line in section]
    return [entry for entry in entries if len(entry) > min_chars][:max_entries]


def extract_section(text: str, keywords: tuple[str, ...]) -> list[str] | None:
    lines = text.splitlines()
    start = next(
        (idx for idx, line in enumerate(lines) if any(keyword in line.lower() for keyword in keywords)),
        None,
    )
    if start is None:
        return None

    end = len(lines)
    for idx in range(start + 1, len(lines)):
        if _is_heading(lines[idx]):
            end = idx
            break
    return lines[start + 1 : end]


def _is_heading(line: str) -> bool:
    value = line.strip().lower()
    return any(value == heading or value.startswith(f"{heading}:") for heading in SECTION_HEADINGS)


def _first_match(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    if not match:
        return None
    return match.group(0).strip()
