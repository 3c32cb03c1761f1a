"""
Study aid rules: generated notes and answered doubts.

Purpose
-------
Build the prompts sent to the text-generation backend and the records a
user keeps afterwards. Pure: nothing here calls the generator or the store.

Business Rules
--------------
- Notes need a topic; subject is optional and detail level defaults to
  ``medium``. Generated notes are only saved when the user asks for it.
- A doubt needs a question; an attached image is carried as a data URL
  (bare base64 is assumed to be JPEG). A doubt is saved with its answer.
- Blank optional text is stored as NULL.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from src.database.models.enums import DetailLevel, DoubtStatus, MaterialType
from src.domain.models.base import DomainValidationError, clean_text, require_text
from src.domain.models.study_session import MAX_SUBJECT_LENGTH

MAX_TITLE_LENGTH = 200
MAX_QUESTION_LENGTH = 4_000
MAX_CONTENT_LENGTH = 200_000
MAX_IMAGE_LENGTH = 10_000_000

DEFAULT_IMAGE_MEDIA_TYPE = "image/jpeg"

NOTES_SYSTEM_PROMPT = (
    "You are an expert study assistant. Write clear, well-structured study "
    "notes that help students learn effectively. Use headings, highlight key "
    "concepts, include examples where relevant and finish with summary "
    "points. Keep the tone educational but engaging."
)

DOUBT_SYSTEM_PROMPT = (
    "You are an expert tutor who helps students understand concepts clearly. "
    "Break complex topics into simple steps, explain with examples and "
    "analogies, and show the working for math or science problems. Be "
    "encouraging: the goal is understanding, not just the answer."
)


@dataclass(frozen=True)
class GenerationPrompt:
    """What the text-generation backend is asked."""

    system: str
    user: str
    image: Optional[str] = None


@dataclass(frozen=True)
class GeneratedMaterialDraft:
    title: str
    content: str
    subject: Optional[str] = None
    material_type: MaterialType = MaterialType.NOTES


@dataclass(frozen=True)
class GeneratedMaterialRecord:
    """A saved material as read back from the store."""

    id: str
    user_id: str
    title: str
    content: str
    material_type: MaterialType
    created_at: datetime
    subject: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "subject": self.subject,
            "content": self.content,
            "material_type": self.material_type.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class DoubtDraft:
    question: str
    answer: str
    subject: Optional[str] = None
    image_url: Optional[str] = None
    status: DoubtStatus = DoubtStatus.ANSWERED


@dataclass(frozen=True)
class DoubtRecord:
    """A saved doubt as read back from the store."""

    id: str
    user_id: str
    question: str
    answer: Optional[str]
    status: DoubtStatus
    created_at: datetime
    subject: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "question": self.question,
            "answer": self.answer,
            "subject": self.subject,
            "has_image": self.image_url is not None,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }


def parse_detail_level(detail_level: Union[DetailLevel, str, None]) -> DetailLevel:
    if detail_level is None:
        return DetailLevel.default()
    try:
        return DetailLevel(detail_level)
    except ValueError:
        raise DomainValidationError(
            f"detail_level must be one of {[d.value for d in DetailLevel]}, got {detail_level!r}",
            field="detail_level",
        ) from None


def normalize_image(image: Optional[str]) -> Optional[str]:
    """
    Return ``image`` as a data URL, or None when no image was attached.

    Example
    -------
    >>> normalize_image("iVBORw0KGgo=")
    'data:image/jpeg;base64,iVBORw0KGgo='
    """
    cleaned = clean_text(image, "image", MAX_IMAGE_LENGTH)
    if cleaned is None:
        return None
    if cleaned.startswith("data:"):
        return cleaned
    return f"data:{DEFAULT_IMAGE_MEDIA_TYPE};base64,{cleaned}"


def build_notes_prompt(
    topic: str,
    subject: Optional[str] = None,
    detail_level: Union[DetailLevel, str, None] = None,
) -> GenerationPrompt:
    """
    Build the prompt for study notes on ``topic``.

    Raises
    ------
    DomainValidationError
        If the topic is blank or too long, or the detail level is unknown.
    """
    topic = require_text(topic, "topic", MAX_TITLE_LENGTH)
    subject = clean_text(subject, "subject", MAX_SUBJECT_LENGTH)
    level = parse_detail_level(detail_level)

    scope = f" in the subject of {subject}" if subject else ""
    user = (
        f'Generate study notes on the topic: "{topic}"{scope}.\n'
        f"Detail level: {level.value}\n\n"
        "Cover:\n"
        "1. Key concepts and definitions\n"
        "2. Important points to remember\n"
        "3. Examples and applications\n"
        "4. Summary of main takeaways"
    )
    return GenerationPrompt(system=NOTES_SYSTEM_PROMPT, user=user)


def build_doubt_prompt(
    question: str,
    subject: Optional[str] = None,
    image: Optional[str] = None,
) -> GenerationPrompt:
    """Build the prompt for answering a student's question."""
    question = require_text(question, "question", MAX_QUESTION_LENGTH)
    subject = clean_text(subject, "subject", MAX_SUBJECT_LENGTH)

    user = f"[Subject: {subject}]\n\n{question}" if subject else question
    return GenerationPrompt(system=DOUBT_SYSTEM_PROMPT, user=user, image=normalize_image(image))


def make_material_draft(
    title: str,
    content: str,
    subject: Optional[str] = None,
) -> GeneratedMaterialDraft:
    return GeneratedMaterialDraft(
        title=require_text(title, "title", MAX_TITLE_LENGTH),
        content=require_text(content, "content", MAX_CONTENT_LENGTH),
        subject=clean_text(subject, "subject", MAX_SUBJECT_LENGTH),
    )


def make_doubt_draft(
    question: str,
    answer: str,
    subject: Optional[str] = None,
    image: Optional[str] = None,
) -> DoubtDraft:
    return DoubtDraft(
        question=require_text(question, "question", MAX_QUESTION_LENGTH),
        answer=require_text(answer, "answer", MAX_CONTENT_LENGTH),
        subject=clean_text(subject, "subject", MAX_SUBJECT_LENGTH),
        image_url=normalize_image(image),
    )


__all__ = [
    "DoubtDraft",
    "DoubtRecord",
    "GeneratedMaterialDraft",
    "GeneratedMaterialRecord",
    "GenerationPrompt",
    "build_doubt_prompt",
    "build_notes_prompt",
    "make_doubt_draft",
    "make_material_draft",
    "normalize_image",
    "parse_detail_level",
]
