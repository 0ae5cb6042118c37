from typing import TypeVar

from pydantic import BaseModel, ValidationError

from exceptions.base import ValidationException

DTO = TypeVar("DTO", bound=BaseModel)


def validate_dto(dto_class: type[DTO], **data) -> DTO:
    """Build a write DTO, turning pydantic errors into ValidationException."""
    try:
        return dto_class(**data)
    except ValidationError as e:
        raise ValidationException.from_pydantic(e) from e


def validate_quantity(quantity: int, field: str = "quantity") -> int:
    # bool is an int subclass, True must not pass as 1
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationException(field, "must be a positive integer")
    return quantity
