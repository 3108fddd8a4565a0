import copy
import logging
import plistlib
from collections.abc import Mapping
from typing import Any, Optional
from xml.parsers.expat import ExpatError

from pytss.exceptions import MissingFieldError, TypeMismatchError

XML_MARKER = b"<?xml"
UINT64_MAX = 0xFFFFFFFFFFFFFFFF

logger = logging.getLogger(__name__)


def is_uint(value: Any) -> bool:
    # bool is an int subclass, but the plist type system keeps them apart
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= UINT64_MAX


def type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "uint" if is_uint(value) else "int"
    if isinstance(value, str):
        return "string"
    if isinstance(value, bytes):
        return "data"
    if isinstance(value, Mapping):
        return "dict"
    if isinstance(value, list):
        return "array"
    return type(value).__name__


def is_type(value: Any, type_: type) -> bool:
    if type_ is int:
        return is_uint(value)
    if type_ is dict:
        return isinstance(value, Mapping)
    return isinstance(value, type_)


def _expected_name(type_: type) -> str:
    return {str: "string", int: "uint", bool: "bool", bytes: "data", dict: "dict"}.get(type_, type_.__name__)


def get_value(document: Mapping, key: str, type_: type, where: str = "parameters") -> Any:
    """
    Get a required typed leaf out of a document.

    :raises MissingFieldError: when the key is absent
    :raises TypeMismatchError: when the key holds a value of another type
    """
    value = document.get(key)
    if value is None:
        logger.error(f"Unable to find required {key} in {where}")
        raise MissingFieldError(key, where)
    if not is_type(value, type_):
        logger.error(f"Unexpected {type_name(value)} value for {key} in {where}")
        raise TypeMismatchError(key, _expected_name(type_), type_name(value), where)
    return value


def get_optional_value(document: Mapping, key: str, type_: type, where: str = "parameters") -> Optional[Any]:
    if document.get(key) is None:
        return None
    return get_value(document, key, type_, where)


def merge(document: dict, overrides: Optional[Mapping]) -> dict:
    """Replace top-level keys of ``document`` with copies of the ones in ``overrides``"""
    if overrides:
        for key, value in overrides.items():
            document[key] = copy.deepcopy(value)
    return document


def deep_merge(document: dict, overrides: Optional[Mapping]) -> dict:
    if overrides:
        for key, value in overrides.items():
            current = document.get(key)
            if isinstance(current, dict) and isinstance(value, Mapping):
                deep_merge(current, value)
            else:
                document[key] = copy.deepcopy(value)
    return document


def serialize(document: Mapping) -> bytes:
    return plistlib.dumps(dict(document), fmt=plistlib.FMT_XML, sort_keys=False)


def parse(data: bytes) -> dict:
    try:
        document = plistlib.loads(data, fmt=plistlib.FMT_XML)
    except (ExpatError, ValueError) as e:
        raise ValueError(f"invalid property list: {e}") from e
    if not isinstance(document, dict):
        raise ValueError(f"expected a dict document, got {type_name(document)}")
    return document


def extract_payload(body: bytes) -> Optional[bytes]:
    offset = body.find(XML_MARKER)
    if offset == -1:
        return None
    return body[offset:]
