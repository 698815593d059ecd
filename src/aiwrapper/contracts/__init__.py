from .extraction import extract_json_payload, json_candidates, repair_control_characters, try_extract_json
from .repair import (
    FieldRepairStrategy,
    ObjectArraySpec,
    REPAIR_STRATEGIES,
    RepairStrategy,
    extract_string_array_field,
    extract_string_field,
    get_repair_strategy,
    repair,
)
from .validator import (
    ATTEMPT_FAILED_ACTION,
    CORRECTION_INSTRUCTION,
    FINAL_FAILED_ACTION,
    MissingStructureError,
    OutputContractValidator,
    describe_issues,
    has_structured_signal,
    validate_output,
)
from .completeness import (
    build_enrichment_messages,
    completeness_score,
    enrichment_max_tokens,
    enrichment_temperature,
    is_underfilled,
    should_attempt_enrichment,
)

__all__ = [
    "extract_json_payload",
    "json_candidates",
    "repair_control_characters",
    "try_extract_json",
    "FieldRepairStrategy",
    "ObjectArraySpec",
    "REPAIR_STRATEGIES",
    "RepairStrategy",
    "extract_string_array_field",
    "extract_string_field",
    "get_repair_strategy",
    "repair",
    "ATTEMPT_FAILED_ACTION",
    "CORRECTION_INSTRUCTION",
    "FINAL_FAILED_ACTION",
    "MissingStructureError",
    "OutputContractValidator",
    "describe_issues",
    "has_structured_signal",
    "validate_output",
    "build_enrichment_messages",
    "completeness_score",
    "enrichment_max_tokens",
    "enrichment_temperature",
    "is_underfilled",
    "should_attempt_enrichment",
]
