"""
Core module - definitions, errors, variables and result cleaning.
"""

from __future__ import annotations

from .cleaning import INDEX_KEY, clean_result, remove_index_keys
from .definitions import QueryDefinition, ResultSet, Row
from .errors import (
    AlreadyInFlightError,
    CycleError,
    DecodeError,
    DefinitionError,
    DepthExceededError,
    EmptyBodyError,
    GuardError,
    HttpError,
    InBandError,
    NetworkError,
    NoEndpointError,
    QueryflowError,
    QueryNotFoundError,
    SandboxError,
    TransportError,
)
from .variables import merge_variables, month_range_variables, parse_variables

__all__ = [
    # Definitions
    "QueryDefinition",
    "ResultSet",
    "Row",
    # Errors
    "QueryflowError",
    "GuardError",
    "CycleError",
    "DepthExceededError",
    "AlreadyInFlightError",
    "DefinitionError",
    "QueryNotFoundError",
    "EmptyBodyError",
    "NoEndpointError",
    "TransportError",
    "NetworkError",
    "HttpError",
    "DecodeError",
    "InBandError",
    "SandboxError",
    # Variables
    "parse_variables",
    "month_range_variables",
    "merge_variables",
    # Cleaning
    "INDEX_KEY",
    "clean_result",
    "remove_index_keys",
]
