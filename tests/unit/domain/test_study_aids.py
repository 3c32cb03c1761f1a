"""
Unit Tests for Study Aid Rules
==============================

Test Coverage
-------------
- Notes prompt wording, subject scoping and detail levels
- Doubt prompt with and without subject or image
- Image normalization to data URLs
- Material and doubt drafts (cleanup and required fields)
"""

import pytest

from src.database.models.enums import DetailLevel, DoubtStatus, MaterialType
from src.domain.models.base import DomainValidationError
from src.domain.models.study_aids import (
    DOUBT_SYSTEM_PROMPT,
    MAX_QUESTION_LENGTH,
    MAX_TITLE_LENGTH,
    NOTES_SYSTEM_PROMPT,
    build_doubt_prompt,
    build_notes_prompt,
    make_doubt_draft,
    make_material_draft,
    normalize_image,
    parse_detail_level,
)


@pytest.mark.unit
@pytest.mark.domain
class TestNotesPrompt:
    def test_topic_with_subject_and_default_detail(self):
        # Act
        prompt = build_notes_prompt("  Photosynthesis ", "Biology")

        # Assert
        assert prompt.system == NOTES_SYSTEM_PROMPT
        assert prompt.user.startswith(
            'Generate study notes on the topic: "Photosynthesis" in the subject of Biology.\n'
            "Detail level: medium\n"
        )
        assert prompt.user.endswith("4. Summary of main takeaways")
        assert prompt.image is None

    def test_subject_is_omitted_when_blank(self):
        prompt = build_notes_prompt("Vectors", "   ", DetailLevel.BRIEF)

        assert 'on the topic: "Vectors".\n' in prompt.user
        assert "in the subject of" not in prompt.user
        assert "Detail level: brief" in prompt.user

    def test_detail_level_accepts_string(self):
        prompt = build_notes_prompt("Vectors", detail_level="detailed")

        assert "Detail level: detailed" in prompt.user

    def test_blank_topic_is_rejected(self):
        with pytest.raises(DomainValidationError) as exc_info:
            build_notes_prompt("   ")

        assert exc_info.value.details["field"] == "topic"

    def test_overlong_topic_is_rejected(self):
        with pytest.raises(DomainValidationError):
            build_notes_prompt("x" * (MAX_TITLE_LENGTH + 1))


@pytest.mark.unit
@pytest.mark.domain
class TestDetailLevel:
    def test_none_is_medium(self):
        assert parse_detail_level(None) is DetailLevel.MEDIUM

    def test_unknown_level_is_rejected(self):
        with pytest.raises(DomainValidationError) as exc_info:
            parse_detail_level("exhaustive")

        assert "exhaustive" in exc_info.value.message


@pytest.mark.unit
@pytest.mark.domain
class TestDoubtPrompt:
    def test_subject_prefixes_question(self):
        prompt = build_doubt_prompt("Why is the sky blue?", "Physics")

        assert prompt.system == DOUBT_SYSTEM_PROMPT
        assert prompt.user == "[Subject: Physics]\n\nWhy is the sky blue?"
        assert prompt.image is None

    def test_question_alone_without_subject(self):
        prompt = build_doubt_prompt("  What is 7 x 8?  ")

        assert prompt.user == "What is 7 x 8?"

    def test_image_is_attached_as_data_url(self):
        prompt = build_doubt_prompt("Solve this", image="aGVsbG8=")

        assert prompt.image == "data:image/jpeg;base64,aGVsbG8="

    def test_blank_question_is_rejected(self):
        with pytest.raises(DomainValidationError):
            build_doubt_prompt("")

    def test_overlong_question_is_rejected(self):
        with pytest.raises(DomainValidationError):
            build_doubt_prompt("q" * (MAX_QUESTION_LENGTH + 1))


@pytest.mark.unit
@pytest.mark.domain
class TestNormalizeImage:
    @pytest.mark.parametrize("image", [None, "", "   "])
    def test_no_image(self, image):
        assert normalize_image(image) is None

    def test_data_url_is_kept(self):
        url = "data:image/png;base64,iVBORw0KGgo="

        assert normalize_image(url) == url

    def test_bare_base64_is_assumed_jpeg(self):
        assert normalize_image(" iVBORw0KGgo= ") == "data:image/jpeg;base64,iVBORw0KGgo="

    def test_non_text_is_rejected(self):
        with pytest.raises(DomainValidationError):
            normalize_image(b"\x89PNG")


@pytest.mark.unit
@pytest.mark.domain
class TestDrafts:
    def test_material_draft_is_cleaned(self):
        # Act
        draft = make_material_draft("  Cell biology ", "# Cells\n", subject="  ")

        # Assert
        assert draft.title == "Cell biology"
        assert draft.content == "# Cells"
        assert draft.subject is None
        assert draft.material_type is MaterialType.NOTES

    def test_material_needs_content(self):
        with pytest.raises(DomainValidationError) as exc_info:
            make_material_draft("Title", "  ")

        assert exc_info.value.details["field"] == "content"

    def test_doubt_draft_is_answered(self):
        draft = make_doubt_draft("Why?", "Because.", subject="Logic", image="abc=")

        assert draft.status is DoubtStatus.ANSWERED
        assert draft.subject == "Logic"
        assert draft.image_url == "data:image/jpeg;base64,abc="

    def test_doubt_needs_answer(self):
        with pytest.raises(DomainValidationError):
            make_doubt_draft("Why?", "")
