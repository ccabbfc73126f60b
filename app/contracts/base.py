"""
This module contains the base contracts for the application.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseContract(BaseModel):
    """
    A base contract for all contracts.
    """
    model_config = ConfigDict(from_attributes=True)


class CamelContract(BaseContract):
    """
    A contract exchanged with the web client, which speaks camelCase.
    Snake_case names are accepted too.
    """
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )
