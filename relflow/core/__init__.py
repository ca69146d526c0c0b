"""Core types: results, exit codes, configuration."""

from .config import (
    BranchPair,
    ConfigStore,
    ConfigurationError,
    NamingTemplates,
    RepositoryDescriptor,
    WorkflowKind,
    load_store,
)
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "BranchPair",
    "ConfigStore",
    "ConfigurationError",
    "NamingTemplates",
    "RepositoryDescriptor",
    "WorkflowKind",
    "load_store",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
