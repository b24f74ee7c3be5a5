from typing import Any, Dict, List, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from makercost.core.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _field_errors(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def validate_model(model_cls: Type[ModelT], data: Any) -> ModelT:
    """
    Build a model from raw data, raising the domain ValidationError on bad input.

    Args:
        model_cls: Pydantic model class to build
        data: Mapping or model instance

    Returns:
        Validated model instance

    Raises:
        ValidationError: If any field is malformed or out of range
    """
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        errors = _field_errors(e)
        summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise ValidationError(f"Invalid {model_cls.__name__}: {summary}", errors) from e


def apply_updates(model: ModelT, updates: Mapping[str, Any]) -> ModelT:
    """Return a re-validated copy of ``model`` with ``updates`` merged in"""
    unknown = [key for key in updates if key not in type(model).model_fields]
    if unknown:
        raise ValidationError(
            f"Unknown field(s) for {type(model).__name__}: {', '.join(sorted(unknown))}",
            [{"field": key, "message": "unknown field"} for key in unknown],
        )
    data = model.model_dump()
    for key, value in updates.items():
        data[key] = value.model_dump() if isinstance(value, BaseModel) else value
    return validate_model(type(model), data)


def has_minimal_content(
    project_name: str,
    client_name: str,
    materials_count: int,
    machines_count: int,
    labor_hours: float,
    sale_amount: float,
) -> bool:
    """True when a project holds anything worth persisting as a draft"""
    return bool(
        (project_name or "").strip()
        or (client_name or "").strip()
        or materials_count > 0
        or machines_count > 0
        or labor_hours > 0
        or sale_amount > 0
    )
