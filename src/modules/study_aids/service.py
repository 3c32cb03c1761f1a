"""
Study Aid Service
=================

Purpose
-------
Generated study notes and the doubt solver. Prompts are built by
``src.domain.models.study_aids``; the text itself comes from a
`TextGenerator` supplied by the embedding application.

Domain
------
- ``generate_notes``: notes for a topic, returned to the caller unsaved
- ``save_notes``: keep generated notes in the user's materials
- ``solve_doubt``: answer a question (optionally with an image) and save it
- ``list_materials`` / ``list_doubts``: saved history, newest first

Failure Handling
----------------
Generation failures surface as `RateLimitedError`, `CreditsExhaustedError`
or `TextGenerationError` and nothing is saved. Generation is not retried
here; saves go through the database retry policy and surface
`StoreUnavailableError` when the store cannot be reached.

Events
------
Published after the save commits:
- ``study_aids.material_saved``
- ``study_aids.doubt_solved``
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

from src.core.database.retry_policy import DatabaseRetryPolicy
from src.core.logging.logger import LogContext
from src.core.validation.input_validator import InputValidator
from src.database.models.enums import DetailLevel
from src.domain.models.study_aids import (
    DoubtRecord,
    GeneratedMaterialRecord,
    GenerationPrompt,
    build_doubt_prompt,
    build_notes_prompt,
    make_doubt_draft,
    make_material_draft,
    parse_detail_level,
)
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import TextGenerationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.event.bus import EventBus
    from src.modules.progression.store import ProgressionStore
    from src.modules.study_aids.generator import TextGenerator


@dataclass(frozen=True)
class GeneratedNotes:
    topic: str
    subject: Optional[str]
    detail_level: DetailLevel
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "subject": self.subject,
            "detail_level": self.detail_level.value,
            "content": self.content,
        }


@dataclass(frozen=True)
class SolvedDoubt:
    doubt_id: str
    question: str
    answer: str
    subject: Optional[str] = None
    has_image: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doubt_id": self.doubt_id,
            "question": self.question,
            "answer": self.answer,
            "subject": self.subject,
            "has_image": self.has_image,
        }


class StudyAidService(BaseService):
    """
    Service for generated notes and answered doubts.

    Dependencies
    ------------
    - ProgressionStore: Units of work over per-user study data
    - TextGenerator: Text-generation backend
    - EventBus: Post-commit notifications
    - Logger: Structured logging
    - DatabaseRetryPolicy: Bounded retries for store outages

    Public Methods
    --------------
    - generate_notes() -> Notes for a topic (not saved)
    - save_notes() -> Keep notes in the user's materials
    - solve_doubt() -> Answer a question and save it
    - list_materials() / list_doubts() -> Saved history
    """

    def __init__(
        self,
        store: ProgressionStore,
        generator: TextGenerator,
        event_bus: EventBus,
        logger: Logger,
        config: Optional[Mapping[str, Any]] = None,
        retry_policy: Optional[DatabaseRetryPolicy] = None,
    ) -> None:
        super().__init__(event_bus, logger, config)
        self._store = store
        self._generator = generator
        self._retry = retry_policy or DatabaseRetryPolicy.from_config()

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def generate_notes(
        self,
        user_id: str,
        topic: str,
        subject: Optional[str] = None,
        detail_level: Union[DetailLevel, str, None] = None,
    ) -> GeneratedNotes:
        """
        Generate study notes for ``topic``. Nothing is saved.

        Raises:
            ValidationError: If the topic is blank or input is malformed
            RateLimitedError: If the generator is throttling requests
            CreditsExhaustedError: If the generator is out of credits
            TextGenerationError: For any other generation failure
        """
        user_id = self.validate_user_id(user_id)
        level = parse_detail_level(detail_level)
        prompt = build_notes_prompt(topic, subject, level)

        async with LogContext(user_id=user_id, operation="study_aids.generate_notes"):
            content = await self._generate("generate_notes", prompt)
            self.log_operation("generate_notes", user_id=user_id, detail_level=level.value)

        return GeneratedNotes(
            topic=topic.strip(),
            subject=subject.strip() if subject and subject.strip() else None,
            detail_level=level,
            content=content,
        )

    async def save_notes(
        self,
        user_id: str,
        title: str,
        content: str,
        subject: Optional[str] = None,
    ) -> str:
        """
        Save generated notes to the user's materials.

        Returns:
            The saved material's id

        Raises:
            ValidationError: If title or content is blank
            StoreUnavailableError: If the save could not be completed
        """
        user_id = self.validate_user_id(user_id)
        draft = make_material_draft(title, content, subject)

        async def save() -> str:
            async with self._store.unit_of_work() as uow:
                return await uow.append_generated_material(user_id, draft)

        async with LogContext(user_id=user_id, operation="study_aids.save_notes"):
            material_id = await self._retry.execute(
                save,
                operation_name="study_aids.save_notes",
                context={"user_id": user_id},
            )
            self.log_operation("save_notes", user_id=user_id, material_id=material_id)
            await self.emit_event(
                "study_aids.material_saved",
                {
                    "user_id": user_id,
                    "material_id": material_id,
                    "material_type": draft.material_type.value,
                    "title": draft.title,
                },
            )
        return material_id

    async def solve_doubt(
        self,
        user_id: str,
        question: str,
        subject: Optional[str] = None,
        image: Optional[str] = None,
    ) -> SolvedDoubt:
        """
        Answer a student's question and save it with its answer.

        Args:
            user_id: Asking user
            question: The question text
            subject: Optional subject hint for the answer
            image: Optional attached image, as a data URL or bare base64

        Raises:
            ValidationError: If the question is blank or input is malformed
            RateLimitedError / CreditsExhaustedError / TextGenerationError:
                If no answer was produced (nothing is saved)
            StoreUnavailableError: If the answer could not be saved
        """
        user_id = self.validate_user_id(user_id)
        prompt = build_doubt_prompt(question, subject, image)

        async with LogContext(user_id=user_id, operation="study_aids.solve_doubt"):
            answer = await self._generate("solve_doubt", prompt)
            draft = make_doubt_draft(question, answer, subject, image)

            async def save() -> str:
                async with self._store.unit_of_work() as uow:
                    return await uow.append_doubt(user_id, draft)

            doubt_id = await self._retry.execute(
                save,
                operation_name="study_aids.solve_doubt",
                context={"user_id": user_id},
            )
            self.log_operation(
                "solve_doubt",
                user_id=user_id,
                doubt_id=doubt_id,
                has_image=draft.image_url is not None,
            )
            await self.emit_event(
                "study_aids.doubt_solved",
                {
                    "user_id": user_id,
                    "doubt_id": doubt_id,
                    "subject": draft.subject,
                },
            )

        return SolvedDoubt(
            doubt_id=doubt_id,
            question=draft.question,
            answer=draft.answer,
            subject=draft.subject,
            has_image=draft.image_url is not None,
        )

    async def list_materials(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[GeneratedMaterialRecord]:
        user_id = self.validate_user_id(user_id)
        limit = self._validated_limit(limit)

        async def read() -> List[GeneratedMaterialRecord]:
            async with self._store.unit_of_work() as uow:
                return await uow.list_generated_materials(user_id, limit)

        return await self._retry.execute(
            read,
            operation_name="study_aids.list_materials",
            context={"user_id": user_id},
        )

    async def list_doubts(self, user_id: str, limit: Optional[int] = None) -> List[DoubtRecord]:
        user_id = self.validate_user_id(user_id)
        limit = self._validated_limit(limit)

        async def read() -> List[DoubtRecord]:
            async with self._store.unit_of_work() as uow:
                return await uow.list_doubts(user_id, limit)

        return await self._retry.execute(
            read,
            operation_name="study_aids.list_doubts",
            context={"user_id": user_id},
        )

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    @staticmethod
    def _validated_limit(limit: Optional[int]) -> Optional[int]:
        if limit is None:
            return None
        return InputValidator.validate_positive_integer(limit, "limit")

    async def _generate(self, operation: str, prompt: GenerationPrompt) -> str:
        """Call the generator; any failure leaves as a `TextGenerationError`."""
        try:
            text = await self._generator.generate_text(prompt)
        except TextGenerationError as exc:
            self.log.warning(
                f"Text generation failed: {exc.error_code}",
                extra={"operation": operation, "error_code": exc.error_code},
            )
            raise
        except Exception as exc:
            error = TextGenerationError(operation, f"{type(exc).__name__} from generator")
            self.log_error(operation, error)
            raise error from exc

        if not isinstance(text, str) or not text.strip():
            error = TextGenerationError(operation, "empty response")
            self.log_error(operation, error)
            raise error
        return text.strip()


__all__ = [
    "GeneratedNotes",
    "SolvedDoubt",
    "StudyAidService",
]
