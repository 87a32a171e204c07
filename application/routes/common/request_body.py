"""
Strict decoding of the search request body.

The body must be exactly one JSON object whose keys are the SearchCriteria
fields (matched case-insensitively). Failures raise RequestBodyError with a
client-facing message; positions are 1-based byte offsets into the body.
"""

import json
from json.decoder import WHITESPACE, scanstring
from typing import Any, Dict, Optional, Tuple

from application.models.search_models import SearchCriteria
from common.config.config import MAX_REQUEST_BODY_BYTES

EMPTY_BODY = "Request body must not be empty"
BODY_TOO_LARGE = "Request body must not be larger than 1MB"
BADLY_FORMED = "Request body contains badly-formed JSON"
BADLY_FORMED_AT = "Request body contains badly-formed JSON (at position {position})"
INVALID_VALUE = (
    'Request body contains an invalid value for the "{field}" field '
    "(at position {position})"
)
UNKNOWN_FIELD = "Request body contains unknown field {name}"
SINGLE_OBJECT_ONLY = "Request body must only contain a single JSON object"

FIELD_NAMES = ("ProjectNamePattern", "FileNamePattern", "ContentPattern")
_FIELDS_BY_LOWER = {name.lower(): name for name in FIELD_NAMES}


class RequestBodyError(Exception):
    """The request body was rejected."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class _NonStandardConstant(ValueError):
    pass


def _reject_constant(name: str) -> Any:
    raise _NonStandardConstant(name)


class _CriteriaDecoder:
    def __init__(self, doc: str):
        self.doc = doc
        self.decoder = json.JSONDecoder(parse_constant=_reject_constant)
        self.deferred: Optional[str] = None

    def decode(self) -> SearchCriteria:
        doc = self.doc
        idx = self._skip(0)
        if idx == len(doc):
            raise RequestBodyError(EMPTY_BODY)

        if doc[idx] != "{":
            _, end = self._value(idx)
            raise RequestBodyError(
                INVALID_VALUE.format(field="", position=self._offset(end))
            )

        values = self._object(idx)
        # Syntax errors win over field errors, so those are reported only now
        if self.deferred:
            raise RequestBodyError(self.deferred)
        return SearchCriteria.model_validate(values)

    def _object(self, idx: int) -> Dict[str, str]:
        doc = self.doc
        values: Dict[str, str] = {}
        idx = self._skip(idx + 1)
        if idx < len(doc) and doc[idx] == "}":
            self._expect_end(idx + 1)
            return values

        while True:
            if idx >= len(doc) or doc[idx] != '"':
                raise self._syntax_error(idx)
            key, idx = self._string(idx + 1)

            idx = self._skip(idx)
            if idx >= len(doc) or doc[idx] != ":":
                raise self._syntax_error(idx)

            idx = self._skip(idx + 1)
            value, idx = self._value(idx)
            self._assign(values, key, value, idx)

            idx = self._skip(idx)
            if idx < len(doc) and doc[idx] == ",":
                idx = self._skip(idx + 1)
                continue
            if idx < len(doc) and doc[idx] == "}":
                self._expect_end(idx + 1)
                return values
            raise self._syntax_error(idx)

    def _assign(self, values: Dict[str, str], key: str, value: Any, end: int) -> None:
        field = _FIELDS_BY_LOWER.get(key.lower())
        if field is None:
            self._defer(UNKNOWN_FIELD.format(name=json.dumps(key, ensure_ascii=False)))
        elif value is None:
            return
        elif not isinstance(value, str):
            self._defer(INVALID_VALUE.format(field=field, position=self._offset(end)))
        else:
            values[field] = value

    def _defer(self, message: str) -> None:
        if self.deferred is None:
            self.deferred = message

    def _expect_end(self, idx: int) -> None:
        if self._skip(idx) != len(self.doc):
            if self.deferred:
                raise RequestBodyError(self.deferred)
            raise RequestBodyError(SINGLE_OBJECT_ONLY)

    def _string(self, idx: int) -> Tuple[str, int]:
        try:
            return scanstring(self.doc, idx)
        except json.JSONDecodeError as e:
            raise self._from_decode_error(e) from e

    def _value(self, idx: int) -> Tuple[Any, int]:
        try:
            return self.decoder.raw_decode(self.doc, idx)
        except json.JSONDecodeError as e:
            raise self._from_decode_error(e) from e
        except _NonStandardConstant as e:
            raise self._syntax_error(idx) from e

    def _from_decode_error(self, error: json.JSONDecodeError) -> RequestBodyError:
        if error.msg.startswith("Unterminated string"):
            return RequestBodyError(BADLY_FORMED)
        return self._syntax_error(error.pos)

    def _syntax_error(self, idx: int) -> RequestBodyError:
        if idx >= len(self.doc):
            return RequestBodyError(BADLY_FORMED)
        return RequestBodyError(BADLY_FORMED_AT.format(position=self._offset(idx + 1)))

    def _skip(self, idx: int) -> int:
        return WHITESPACE.match(self.doc, idx).end()

    def _offset(self, idx: int) -> int:
        return len(self.doc[:idx].encode("utf-8", "surrogateescape"))


def decode_search_criteria(
    body: bytes, max_bytes: int = MAX_REQUEST_BODY_BYTES
) -> SearchCriteria:
    """Decode and validate a search request body.

    Raises:
        RequestBodyError: With status 413 for oversized bodies, 400 otherwise
    """
    if len(body) > max_bytes:
        raise RequestBodyError(BODY_TOO_LARGE, 413)

    doc = body.decode("utf-8", "surrogateescape")
    return _CriteriaDecoder(doc).decode()
