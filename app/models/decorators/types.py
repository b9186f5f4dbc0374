import logging
from enum import Enum
from typing import Any, TypeVar

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

EnumT = TypeVar("EnumT", bound=Enum)


class EnumStringType(TypeDecorator[EnumT]):
    """Stores an Enum member by its value in a plain string column."""

    impl = String(50)
    cache_ok = True

    def __init__(self, enum_class: type[EnumT], *args: Any, **kwargs: Any):
        super(EnumStringType, self).__init__(*args, **kwargs)
        self._enum_class = enum_class
        self._logger = logging.getLogger(__name__)

    def process_bind_param(self, value: EnumT | str | None, dialect: Any) -> str | None:
        if value is None:
            return None
        # Query builders and raw inserts may hand us the plain string.
        if isinstance(value, str):
            try:
                value = self._enum_class(value)
            except ValueError:
                self._logger.error(f"Invalid enum value: {value} for {self._enum_class}")
                raise
        return str(value.value)

    def process_result_value(self, value: str | None, dialect: Any) -> EnumT | None:
        if value is None:
            return None
        try:
            return self._enum_class(value)
        except ValueError:
            raise ValueError(f"Invalid enum value: {value} for {self._enum_class}")
