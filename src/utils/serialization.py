"""JSON encoding of store documents."""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any

from bson import ObjectId
from pydantic import BaseModel


def json_default(value: Any) -> Any:
    """``json.dumps`` hook for ids, dates, enums and models."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(payload: Any) -> str:
    return json.dumps(payload, default=json_default)
