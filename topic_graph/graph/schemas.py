"""
Request models for graph operations.

Validation failures are reported as InvalidInput. Omitted strategy and
threshold values are filled from Settings here, so the service always
receives them explicitly.
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from ..common.config import MAX_GRAPH_NAME_LENGTH, MAX_LABEL_LENGTH, Settings
from ..preprocessing import normalize
from .errors import InvalidInput


def _check_normalized_length(value: str) -> str:
    # Lowercasing can lengthen a label: "İ" lowers to two code points
    if len(normalize(value)) > MAX_LABEL_LENGTH:
        raise ValueError(
            f"label is longer than {MAX_LABEL_LENGTH} characters once normalized"
        )
    return value


Label = Annotated[
    str,
    StringConstraints(max_length=MAX_LABEL_LENGTH),
    AfterValidator(_check_normalized_length),
]


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


class _TopicsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    topics: List[Label]
    strategy: Optional[str] = None
    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @classmethod
    def parse(cls, payload: Dict[str, Any], settings: Settings):
        """
        Validate a raw payload and resolve defaults.

        Raises:
            InvalidInput: if the payload violates any constraint
        """
        try:
            request = cls.model_validate(payload)
        except ValidationError as exc:
            raise InvalidInput(_format_errors(exc)) from exc

        if len(request.topics) > settings.max_topics_per_graph:
            raise InvalidInput(
                f"topics: at most {settings.max_topics_per_graph} topics are allowed per graph"
            )

        return request.model_copy(
            update={
                "strategy": request.strategy or settings.default_strategy,
                "threshold": (
                    settings.default_threshold
                    if request.threshold is None
                    else request.threshold
                ),
            }
        )


class CreateGraphRequest(_TopicsRequest):
    """Payload for creating a graph from at least two topic labels."""

    name: Optional[str] = Field(default=None, max_length=MAX_GRAPH_NAME_LENGTH)
    topics: List[Label] = Field(min_length=2)


class AddTopicsRequest(_TopicsRequest):
    """Payload for adding at least one topic label to an existing graph."""

    topics: List[Label] = Field(min_length=1)
