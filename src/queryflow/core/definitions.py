"""
Pydantic models for stored query definitions and result sets.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


Row = dict[str, Any]

# Either a plain dict or an order-preserving mapping such as OrderedDict.
# Consumers key off the concrete type, so the pipeline never converts between them.
ResultSet = Union[dict[str, list[Any]], Mapping[str, list[Any]]]


class QueryDefinition(BaseModel):
    """
    A named query as kept in the definition store.

    Example:
    {
        "name": "Orders",
        "body": "{ orders { id total } }",
        "variables": "{\"limit\": 10}",
        "transformerCode": "return data",
        "urlKey": "erp"
    }
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = ""
    body: str = ""
    variables: Optional[str] = None  # raw text, may contain comments
    transformer_code: Optional[str] = Field(default=None, alias="transformerCode")
    endpoint_key: Optional[str] = Field(default=None, alias="urlKey")

    @property
    def has_transformer(self) -> bool:
        return bool(self.transformer_code and self.transformer_code.strip())

    @property
    def has_body(self) -> bool:
        return bool(self.body and self.body.strip())
