"""
Wallet address type — 20-byte hex, lower-case canonical form.
"""

import re
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from token_chat.errors import InvalidAddressError

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class Address(str):
    """Validated address. Compares case-insensitively because it is stored lower-case."""

    def __new__(cls, value: Any) -> "Address":
        if isinstance(value, Address):
            return value
        if not isinstance(value, str):
            raise InvalidAddressError(value)
        raw = value.strip()
        if not ADDRESS_RE.fullmatch(raw):
            raise InvalidAddressError(value)
        return super().__new__(cls, raw.lower())

    @staticmethod
    def is_valid(value: Any) -> bool:
        return isinstance(value, str) and ADDRESS_RE.fullmatch(value.strip()) is not None

    def __repr__(self) -> str:
        return f"Address({str(self)!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        def validate(value: Any) -> "Address":
            try:
                return cls(value)
            except InvalidAddressError as e:
                # pydantic only wraps ValueError/AssertionError into its ValidationError
                raise ValueError(str(e)) from e

        return core_schema.no_info_plain_validator_function(
            validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )
