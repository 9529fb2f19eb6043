"""Outcome types returned by the multi-step sync protocols."""

from typing import Optional

from pydantic import BaseModel, Field

from .book import Book
from .reading_session import ReadingSession


class StepOutcome(BaseModel):
    """Result of one step of a protocol, exposed so partial success is visible."""

    step: str
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls, step: str) -> "StepOutcome":
        return cls(step=step, ok=True)

    @classmethod
    def failure(cls, step: str, error: BaseException) -> "StepOutcome":
        return cls(step=step, ok=False, error=str(error))


class ProtocolResult(BaseModel):
    """Common shape of create/update results."""

    book: Book
    steps: list[StepOutcome] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when every recorded step succeeded."""
        return all(step.ok for step in self.steps)

    @property
    def failed_steps(self) -> list[str]:
        return [step.step for step in self.steps if not step.ok]

    def outcome(self, step: str) -> Optional[StepOutcome]:
        """Return the outcome recorded for ``step``, if that step ran."""
        for outcome in self.steps:
            if outcome.step == step:
                return outcome
        return None


class CreateBookResult(ProtocolResult):
    """Outcome of create-with-relations."""


class UpdateBookResult(ProtocolResult):
    """Outcome of update-with-relations."""


class ProgressResult(BaseModel):
    """Outcome of logging a reading session."""

    session: ReadingSession
    book: Book
