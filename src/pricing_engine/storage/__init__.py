"""
Step persistence for the Pricing Step Engine.
"""

from .base import InMemoryStepStore, StepStore
from .documents import encode_fields, step_from_document, step_to_document
from .mongo import MongoStepStore

__all__ = [
    "InMemoryStepStore",
    "MongoStepStore",
    "StepStore",
    "encode_fields",
    "step_from_document",
    "step_to_document",
]
