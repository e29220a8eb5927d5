"""Parse-or-fail entry point for input records."""

from typing import Any, Dict, List, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from tracker.errors import ValidationFailure

M = TypeVar("M", bound=BaseModel)


def field_errors(error: ValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic errors to one entry per violated field path."""
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "<record>",
            "message": err["msg"],
            "type": err["type"],
        }
        for err in error.errors()
    ]


def parse(model_cls: Type[M], data: Union[M, Mapping[str, Any]], entity: str) -> M:
    """
    Validate `data` as `model_cls`.

    Instances of model_cls pass through (they were validated on
    construction). Anything else is validated, and failures become a
    ValidationFailure naming every offending field.
    """
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise ValidationFailure(entity, field_errors(e)) from e
