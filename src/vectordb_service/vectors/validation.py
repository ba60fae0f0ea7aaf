"""
Record Validation

Explicit, typed validation rules applied to vector records and search
requests before anything reaches the backing collection.

Every rule contributes zero or more ``FieldError`` entries; callers get the
complete list of violations rather than the first one found.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence

from ..config import Settings, settings as default_settings
from ..core.clock import to_iso
from ..core.errors import FieldError, RecordValidationError
from .math import VectorMathError, validate_vector
from .models import (
    CREATE_METADATA_FIELDS,
    SOURCE_TYPES,
    UPDATE_METADATA_FIELDS,
    SearchFilters,
)


REQUIRED_METADATA_FIELDS = ("source_type", "source_id", "user_id")
STRING_METADATA_FIELDS = ("source_id", "user_id", "model_version", "content_preview")


class ValidationMode(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    SEARCH = "search"


@dataclass(frozen=True)
class ValidationLimits:
    """Bounds applied by the validator; all configurable."""

    min_dimensions: int = 100
    max_dimensions: int = 4096
    update_min_dimensions: int = 1
    max_batch_size: int = 100
    max_content_preview_length: int = 200

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ValidationLimits":
        config = config or default_settings
        return cls(
            min_dimensions=config.min_vector_dimensions,
            max_dimensions=config.max_vector_dimensions,
            update_min_dimensions=config.update_min_vector_dimensions,
            max_batch_size=config.max_batch_size,
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RecordValidator:
    """
    Validates vectors and metadata for create, update and search requests.
    """

    def __init__(self, limits: Optional[ValidationLimits] = None) -> None:
        self.limits = limits or ValidationLimits.from_settings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(
        self,
        vector: Optional[Sequence[float]],
        metadata: Optional[Mapping[str, Any]],
        mode: ValidationMode,
        prefix: str = "",
    ) -> List[FieldError]:
        """
        Return every rule violated by a candidate record.

        Parameters
        ----------
        vector : Optional[Sequence[float]]
            Candidate vector. Required for create and search.
        metadata : Optional[Mapping[str, Any]]
            Candidate metadata. Required for create, ignored for search.
        mode : ValidationMode
            Which rule set applies.
        prefix : str
            Field path prefix, used when validating batch items.
        """
        if mode is ValidationMode.UPDATE:
            minimum = self.limits.update_min_dimensions
        else:
            minimum = self.limits.min_dimensions

        errors = self._vector_errors(
            vector,
            minimum=minimum,
            required=mode is not ValidationMode.UPDATE,
            field=f"{prefix}vector",
        )
        if mode is not ValidationMode.SEARCH:
            errors.extend(self._metadata_errors(metadata, mode, field=f"{prefix}metadata"))
        return errors

    def check(
        self,
        vector: Optional[Sequence[float]],
        metadata: Optional[Mapping[str, Any]],
        mode: ValidationMode,
    ) -> None:
        """Raise RecordValidationError if ``validate`` reports anything."""
        errors = self.validate(vector, metadata, mode)
        if errors:
            raise RecordValidationError(errors)

    def validate_search(
        self,
        vector: Optional[Sequence[float]],
        filters: Optional[SearchFilters],
    ) -> List[FieldError]:
        errors = self.validate(vector, None, ValidationMode.SEARCH)
        if filters is None:
            return errors

        if filters.source_type is not None and filters.source_type not in SOURCE_TYPES:
            errors.append(FieldError(
                "filters.source_type",
                f"must be one of [{', '.join(SOURCE_TYPES)}]",
            ))

        if (
            filters.created_after is not None
            and filters.created_before is not None
            and to_iso(filters.created_after) > to_iso(filters.created_before)
        ):
            errors.append(FieldError(
                "filters.created_before",
                "must not be earlier than created_after",
            ))
        return errors

    def check_search(
        self,
        vector: Optional[Sequence[float]],
        filters: Optional[SearchFilters],
    ) -> None:
        errors = self.validate_search(vector, filters)
        if errors:
            raise RecordValidationError(errors)

    def validate_batch(self, items: Sequence[Mapping[str, Any]]) -> List[FieldError]:
        """
        Validate a batch: the item count, then every item under create rules.
        """
        errors: List[FieldError] = []
        count = len(items)
        if count < 1:
            errors.append(FieldError("vectors", "must contain at least 1 item"))
        elif count > self.limits.max_batch_size:
            errors.append(FieldError(
                "vectors",
                f"must contain at most {self.limits.max_batch_size} items",
            ))

        for index, item in enumerate(items):
            prefix = f"vectors[{index}]."
            if not isinstance(item, Mapping):
                errors.append(FieldError(f"vectors[{index}]", "must be an object"))
                continue
            errors.extend(self.validate(
                item.get("vector"),
                item.get("metadata"),
                ValidationMode.CREATE,
                prefix=prefix,
            ))
        return errors

    def check_batch(self, items: Sequence[Mapping[str, Any]]) -> None:
        errors = self.validate_batch(items)
        if errors:
            raise RecordValidationError(errors)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _vector_errors(
        self,
        vector: Any,
        minimum: int,
        required: bool,
        field: str,
    ) -> List[FieldError]:
        if vector is None:
            return [FieldError(field, "Vector is required")] if required else []

        try:
            validate_vector(vector, max_dimensions=self.limits.max_dimensions)
        except VectorMathError as exc:
            return [FieldError(field, str(exc))]

        if len(vector) < minimum:
            return [FieldError(field, f"Vector must have at least {minimum} dimensions")]
        return []

    def _metadata_errors(
        self,
        metadata: Any,
        mode: ValidationMode,
        field: str,
    ) -> List[FieldError]:
        creating = mode is ValidationMode.CREATE

        if metadata is None:
            return [FieldError(field, "Metadata is required")] if creating else []
        if not isinstance(metadata, Mapping):
            return [FieldError(field, "Metadata must be an object")]

        errors: List[FieldError] = []
        allowed = CREATE_METADATA_FIELDS if creating else UPDATE_METADATA_FIELDS

        for key in sorted(set(metadata) - allowed):
            errors.append(FieldError(f"{field}.{key}", "is not allowed"))

        if creating:
            for key in REQUIRED_METADATA_FIELDS:
                if metadata.get(key) is None:
                    errors.append(FieldError(f"{field}.{key}", "is required"))

        def present(key: str) -> bool:
            if key not in metadata:
                return False
            # Missing required values were already reported above
            return not (creating and key in REQUIRED_METADATA_FIELDS and metadata[key] is None)

        if present("source_type") and metadata["source_type"] not in SOURCE_TYPES:
            errors.append(FieldError(
                f"{field}.source_type",
                f"must be one of [{', '.join(SOURCE_TYPES)}]",
            ))

        for key in STRING_METADATA_FIELDS:
            if not present(key):
                continue
            value = metadata[key]
            if not isinstance(value, str):
                errors.append(FieldError(f"{field}.{key}", "must be a string"))
            elif not value:
                errors.append(FieldError(f"{field}.{key}", "is not allowed to be empty"))

        preview = metadata.get("content_preview")
        limit = self.limits.max_content_preview_length
        if isinstance(preview, str) and len(preview) > limit:
            errors.append(FieldError(
                f"{field}.content_preview",
                f"length must be less than or equal to {limit} characters long",
            ))

        if present("tags"):
            tags = metadata["tags"]
            if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
                errors.append(FieldError(f"{field}.tags", "must be an array of strings"))

        if present("confidence_score"):
            score = metadata["confidence_score"]
            if not _is_number(score) or not math.isfinite(score):
                errors.append(FieldError(f"{field}.confidence_score", "must be a number"))
            elif not 0 <= score <= 1:
                errors.append(FieldError(
                    f"{field}.confidence_score",
                    "must be between 0 and 1",
                ))

        if creating and present("dimensions"):
            dims = metadata["dimensions"]
            if not isinstance(dims, int) or isinstance(dims, bool) or dims < 1:
                errors.append(FieldError(f"{field}.dimensions", "must be a positive integer"))

        return errors
