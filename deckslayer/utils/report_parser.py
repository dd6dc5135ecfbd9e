"""
Report Decoding

Pure helpers around the structured output of the synthesis agents. The
agents themselves are constrained to their output models; these functions
only validate recorded payloads and decode the in-flight arguments of a
streamed output call for progress previews. Nothing here performs I/O.
"""
import json
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError
from pydantic_core import from_json

from deckslayer.core.exceptions import SchemaValidationError

M = TypeVar("M", bound=BaseModel)


def validate_report(data: Union[str, bytes, Dict[str, Any]], model_cls: Type[M]) -> M:
    """
    Strictly validate a complete payload against `model_cls`.

    Args:
        data: JSON text or an already decoded object
        model_cls: Target pydantic model

    Raises:
        SchemaValidationError: If the payload does not fit the schema
    """
    try:
        if isinstance(data, (str, bytes)):
            return model_cls.model_validate_json(data)
        return model_cls.model_validate(data)
    except ValidationError as e:
        preview = data if isinstance(data, str) else json.dumps(data, default=str)
        raise SchemaValidationError(model_cls.__name__, str(e), preview[:200]) from e


def args_text(args: Union[str, Dict[str, Any], None]) -> str:
    """Normalize output-call arguments, which arrive either as JSON text or a dict."""
    if args is None:
        return ""
    return args if isinstance(args, str) else json.dumps(args)


def parse_partial(args: Union[str, Dict[str, Any], None]) -> Optional[Dict[str, Any]]:
    """
    Best-effort decode of incomplete output-call arguments.

    Never raises. Returns None when nothing usable has arrived yet.
    """
    if isinstance(args, dict):
        return args
    if not args:
        return None

    try:
        value = from_json(args, allow_partial="trailing-strings")
    except ValueError:
        return None

    return value if isinstance(value, dict) and value else None
