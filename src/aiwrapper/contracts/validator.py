"""Schema enforcement for model output with a single corrective retry."""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from ..providers.base import ChatMessage
from ..utils.errors import StructuredOutputValidationFailure
from .extraction import extract_json_payload
from .repair import repair

logger = logging.getLogger(__name__)

CORRECTION_INSTRUCTION = "Return ONLY corrected JSON matching the schema; no extra text."
RAW_PREVIEW_CHARS = 500

ATTEMPT_FAILED_ACTION = "structured_output_validation_failed_attempt"
FINAL_FAILED_ACTION = "structured_output_validation_failed_final"

AuditWriter = Callable[[str, str, Dict[str, Any]], Awaitable[Any]]
Regenerate = Callable[[List[ChatMessage]], Awaitable[str]]


class MissingStructureError(ValueError):
    """Response parsed, but none of the vertical's required keys were present."""

    def __init__(self, required_keys: List[str]):
        super().__init__(f"Response did not contain any of the required keys: {', '.join(required_keys)}")
        self.required_keys = required_keys


def validate_output(schema: Type[BaseModel], vertical, raw: str) -> Dict[str, Any]:
    """Validate raw model text against ``schema``.

    The repaired candidate is preferred; the direct parse is used when only it
    validates. Raises the repaired candidate's ``ValidationError`` otherwise.
    """
    direct = extract_json_payload(raw)
    repaired = repair(raw, vertical, direct)

    try:
        output = schema.model_validate(repaired).model_dump(mode="json")
    except ValidationError as repaired_error:
        try:
            return schema.model_validate(direct).model_dump(mode="json")
        except ValidationError:
            raise repaired_error

    if repaired != direct:
        logger.warning(
            f"[contracts] normalized model output for {vertical.id}",
            extra={"vertical_id": vertical.id},
        )
    return output


def has_structured_signal(payload: Any, vertical) -> bool:
    if not isinstance(payload, dict):
        return False
    return any(key in payload for key in vertical.required_keys)


def describe_issues(error: Exception) -> List[Dict[str, str]]:
    if isinstance(error, ValidationError):
        return [
            {
                "path": ".".join(str(part) for part in issue.get("loc", ())),
                "message": issue.get("msg", ""),
                "type": issue.get("type", ""),
            }
            for issue in error.errors()
        ]
    if isinstance(error, MissingStructureError):
        return [{"path": "", "message": str(error), "type": "missing_structure"}]
    return [{"path": "", "message": str(error), "type": type(error).__name__}]


class OutputContractValidator:
    """Holds one vertical's output contract for the duration of a job."""

    def __init__(
        self,
        vertical,
        audit_writer: Optional[AuditWriter] = None,
        user_id: Optional[str] = None,
        job_id: Optional[str] = None,
    ):
        self.vertical = vertical
        self.audit_writer = audit_writer
        self.user_id = user_id
        self.job_id = job_id

    def check(self, raw: str) -> Dict[str, Any]:
        """Validate a single response, requiring at least one required key in the parse."""
        if not has_structured_signal(extract_json_payload(raw), self.vertical):
            raise MissingStructureError(self.vertical.required_keys)
        return validate_output(self.vertical.output_schema, self.vertical, raw)

    async def enforce(self, messages: List[ChatMessage], first_text: str, regenerate: Regenerate) -> Dict[str, Any]:
        """Validate ``first_text``, retrying once with a correction turn on failure.

        Raises:
            StructuredOutputValidationFailure: the corrective retry failed too
        """
        try:
            return self.check(first_text)
        except (ValidationError, MissingStructureError) as e:
            await self._audit(ATTEMPT_FAILED_ACTION, "initial", e, first_text)
            logger.warning(
                f"[contracts] invalid structured output for {self.vertical.id}, retrying once",
                extra={"vertical_id": self.vertical.id, "job_id": self.job_id},
            )

        retry_messages = [
            *messages,
            ChatMessage(role="assistant", content=first_text),
            ChatMessage(role="user", content=CORRECTION_INSTRUCTION),
        ]
        retry_text = await regenerate(retry_messages)

        try:
            return self.check(retry_text)
        except (ValidationError, MissingStructureError) as e:
            issues = describe_issues(e)
            await self._audit(FINAL_FAILED_ACTION, "retry", e, retry_text)
            raise StructuredOutputValidationFailure(
                vertical_id=self.vertical.id,
                stage="retry",
                issues=issues,
                raw_preview=retry_text[:RAW_PREVIEW_CHARS],
                retry_attempted=True,
            ) from e

    async def _audit(self, action: str, stage: str, error: Exception, raw: str) -> None:
        if self.audit_writer is None or self.user_id is None:
            return
        metadata = {
            "job_id": self.job_id,
            "vertical_id": self.vertical.id,
            "stage": stage,
            "issues": describe_issues(error),
            "raw_preview": raw[:RAW_PREVIEW_CHARS],
        }
        try:
            await self.audit_writer(self.user_id, action, metadata)
        except Exception as e:
            logger.error(f"[contracts] failed to write audit event {action}: {e}")
