"""
Module scheduling for assessment sessions.

Validates the set of test modules bound to a session and exposes the
canonical traversal order used by the attempt tracker and any UI.

Validation rules (creation time, before a session is usable):
- 1 to MAX_SESSION_MODULES modules
- sequence numbers positive and unique
- test references unique (no test repeated in one session)
- each weight within [MODULE_WEIGHT_MIN, MODULE_WEIGHT_MAX]

Violations are collected into a list of field-scoped errors rather than
raised one at a time, so a caller can surface every problem at once.
"""
from collections import Counter
from typing import Dict, List, Mapping, Optional, Sequence

from assessment_engine.core.config import settings
from assessment_engine.core.entities import Attempt, SessionModule
from assessment_engine.core.exceptions import FieldError, ValidationError
from libs.domain_types import AttemptStatus

FINISHED_ATTEMPT_STATUSES = frozenset(
    {AttemptStatus.COMPLETED, AttemptStatus.AUTO_COMPLETED, AttemptStatus.EXPIRED}
)


def validate_modules(modules: Sequence[SessionModule]) -> List[FieldError]:
    """
    Validate a session's module configuration.

    Args:
        modules: Modules in any order

    Returns:
        Every violation found (empty list when valid)
    """
    errors: List[FieldError] = []
    max_modules = settings.MAX_SESSION_MODULES

    if not modules:
        errors.append(
            FieldError("modules", "At least one test module is required.", "TOO_FEW_MODULES")
        )
        return errors

    if len(modules) > max_modules:
        errors.append(
            FieldError(
                "modules",
                f"Maximum {max_modules} test modules allowed.",
                "TOO_MANY_MODULES",
            )
        )

    sequence_counts = Counter(m.sequence for m in modules)
    test_counts = Counter(m.test_id for m in modules)
    reported_sequences: set = set()
    reported_tests: set = set()

    for index, module in enumerate(modules):
        prefix = f"modules[{index}]"

        if module.sequence < 1:
            errors.append(
                FieldError(
                    f"{prefix}.sequence",
                    "Sequence must be a positive integer.",
                    "SEQUENCE_NOT_POSITIVE",
                )
            )
        elif sequence_counts[module.sequence] > 1 and module.sequence not in reported_sequences:
            reported_sequences.add(module.sequence)
            errors.append(
                FieldError(
                    f"{prefix}.sequence",
                    f"Sequence {module.sequence} is used by more than one module.",
                    "DUPLICATE_SEQUENCE",
                )
            )

        if test_counts[module.test_id] > 1 and module.test_id not in reported_tests:
            reported_tests.add(module.test_id)
            errors.append(
                FieldError(
                    f"{prefix}.test_id",
                    f"Test {module.test_id} appears more than once in this session.",
                    "DUPLICATE_TEST",
                )
            )

        if not (
            settings.MODULE_WEIGHT_MIN <= module.weight <= settings.MODULE_WEIGHT_MAX
        ):
            errors.append(
                FieldError(
                    f"{prefix}.weight",
                    f"Weight must be between {settings.MODULE_WEIGHT_MIN} "
                    f"and {settings.MODULE_WEIGHT_MAX}.",
                    "WEIGHT_OUT_OF_RANGE",
                )
            )

    return errors


def ensure_valid_modules(modules: Sequence[SessionModule]) -> List[SessionModule]:
    """
    Validate modules and return them in canonical order.

    Raises:
        ValidationError: Carrying every violation found
    """
    errors = validate_modules(modules)
    if errors:
        raise ValidationError(errors, "Invalid session module configuration")
    return ordered_sequence(modules)


def ordered_sequence(modules: Sequence[SessionModule]) -> List[SessionModule]:
    """Return modules sorted ascending by sequence (the canonical traversal order)."""
    return sorted(modules, key=lambda m: m.sequence)


def next_module(
    modules: Sequence[SessionModule],
    attempts_by_test: Mapping[int, Attempt],
) -> Optional[SessionModule]:
    """
    Return the first module in order whose attempt has not finished.

    A module with no attempt yet, or with a not_started/in_progress attempt,
    is the next one to work on. Returns None when every module is finished.
    """
    for module in ordered_sequence(modules):
        attempt = attempts_by_test.get(module.test_id)
        if attempt is None or attempt.status not in FINISHED_ATTEMPT_STATUSES:
            return module
    return None


def required_modules_finished(
    modules: Sequence[SessionModule],
    attempts_by_test: Mapping[int, Attempt],
) -> bool:
    """True when every required module has a finished attempt."""
    for module in modules:
        if not module.is_required:
            continue
        attempt = attempts_by_test.get(module.test_id)
        if attempt is None or attempt.status not in FINISHED_ATTEMPT_STATUSES:
            return False
    return True


def normalized_weights(modules: Sequence[SessionModule]) -> Dict[int, float]:
    """
    Module weights rescaled to sum to 1.0, keyed by test id.

    Falls back to equal weights if every weight is zero.
    """
    if not modules:
        return {}
    total = sum(m.weight for m in modules)
    if total <= 0:
        equal = 1.0 / len(modules)
        return {m.test_id: equal for m in modules}
    return {m.test_id: m.weight / total for m in modules}
