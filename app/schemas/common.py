from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

MIN_PASSWORD_LENGTH = 8


class CamelModel(BaseModel):
    """Request body accepting both ``snake_case`` and ``camelCase`` keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def require_text(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("Missing Details")
    return value


def strong_password(value: str) -> str:
    if len(value or "") < MIN_PASSWORD_LENGTH:
        raise ValueError("Please enter a strong password (minimum 8 characters)")
    return value


NonEmptyStr = Annotated[str, AfterValidator(require_text)]
Password = Annotated[str, AfterValidator(strong_password)]
