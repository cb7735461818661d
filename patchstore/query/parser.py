"""
Parsers for query strings and YAML query definitions.

Query strings are the serialized form produced by Filter, Sort and Range:

    lt(key,5)&eq(id,"1")
    (gte(meta/stars,3)|in(tags,"python"))&ne(archived,true)
    Sort(/added, -)
    range(0, 20)

Query definitions describe a pipeline declaratively:

    python_recent:
      filter: 'in(tags,"python")&ne(archived,true)'
      sort: added desc
      range: [0, 20]

    top_rated:
      pipeline:
        - sort: {path: /meta/stars, descending: true}
        - range: {start: 0, count: 10}
        - filter: 'gt(meta/stars,0)'
"""

import json
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml

from patchstore.errors import ArgumentError, ParseError
from patchstore.patch.pointer import Pointer
from patchstore.query.base import Query
from patchstore.query.filter import BoolOp, Comparator, Filter, FilterOp
from patchstore.query.range import Range
from patchstore.query.sort import Sort

_DECODER = json.JSONDecoder()
_JSON_START = set('"[{-0123456789tfn')
_TOKEN_PATTERN = re.compile(r"[A-Za-z]+")
_SORT_PATTERN = re.compile(r"^\s*sort\(\s*(?P<path>.*?)\s*,\s*(?P<direction>[+-])\s*\)\s*$", re.IGNORECASE)
_RANGE_PATTERN = re.compile(r"^\s*range\(\s*(?P<start>\d+)\s*,\s*(?P<count>\d+)\s*\)\s*$", re.IGNORECASE)


# =============================================================================
# Query strings
# =============================================================================

class FilterParser:
    """
    Recursive descent parser for filter query strings.

    Grammar:
        chain := term (('&' | '|') term)*
        term  := '(' chain ')' | call
        call  := token '(' [path ','] json ')'
    """

    def __init__(self, text: str, serializer: Optional[Callable[[Filter], str]] = None):
        self.text = text
        self.pos = 0
        self.serializer = serializer

    def parse(self) -> Filter:
        self._skip_ws()
        if self.pos == len(self.text):
            return Filter(serializer=self.serializer)
        result = self._parse_chain()
        self._skip_ws()
        if self.pos != len(self.text):
            self._error("Unexpected trailing input")
        return result

    def _error(self, message: str) -> None:
        raise ParseError(f"{message} at position {self.pos} in {self.text!r}")

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, char: str) -> None:
        self._skip_ws()
        if self._peek() != char:
            self._error(f"Expected {char!r}")
        self.pos += 1

    def _parse_chain(self) -> Filter:
        members: list = []
        while True:
            self._skip_ws()
            members.append(self._parse_term())
            self._skip_ws()
            char = self._peek()
            if char == BoolOp.AND.value:
                members.append(BoolOp.AND)
            elif char == BoolOp.OR.value:
                members.append(BoolOp.OR)
            else:
                break
            self.pos += 1
        return Filter(members, self.serializer)

    def _parse_term(self):
        if self._peek() == "(":
            self.pos += 1
            inner = self._parse_chain()
            self._expect(")")
            return inner
        return self._parse_call()

    def _parse_value(self) -> Any:
        self._skip_ws()
        try:
            value, end = _DECODER.raw_decode(self.text, self.pos)
        except json.JSONDecodeError:
            self._error("Expected a JSON value")
        self.pos = end
        return value

    def _parse_call(self) -> Comparator:
        match = _TOKEN_PATTERN.match(self.text, self.pos)
        if not match:
            self._error("Expected an operator")
        token = match.group(0)
        try:
            op = FilterOp(token)
        except ValueError:
            op = None
        if op is None or op is FilterOp.CUSTOM:
            self._error(f"Unknown filter operator {token!r}")
        self.pos = match.end()
        self._expect("(")
        self._skip_ws()

        path, value = self._parse_arguments()
        self._expect(")")

        if op is FilterOp.MATCHES:
            if not isinstance(value, str):
                self._error("match() expects a string pattern")
            value = re.compile(value)
        return Comparator(op, value, path)

    def _parse_arguments(self):
        """
        Parse either ``value`` or ``path,value``.

        A leading JSON literal directly followed by ')' is a bare value.
        A JSON string followed by ',' is a quoted pointer (``"/a,b"``).
        Anything else up to the first comma is a pointer without its
        leading slash.
        """
        start = self.pos
        if self._peek() in _JSON_START:
            try:
                value, end = _DECODER.raw_decode(self.text, self.pos)
            except json.JSONDecodeError:
                pass
            else:
                self.pos = end
                self._skip_ws()
                if self._peek() == ")":
                    return None, value
                if self._peek() == "," and isinstance(value, str):
                    try:
                        path = Pointer.parse(value)
                    except ArgumentError as e:
                        self._error(f"Invalid quoted path: {e}")
                    self.pos += 1
                    return path, self._parse_value()
                self.pos = start

        comma = self.text.find(",", start)
        path_text = self.text[start:comma] if comma >= 0 else ""
        if comma < 0 or any(char in path_text for char in "()&|"):
            self._error("Expected ',' after path")
        self.pos = comma + 1
        return Pointer.parse("/" + path_text.strip()), self._parse_value()


def parse_filter(text: str, serializer: Optional[Callable[[Filter], str]] = None) -> Filter:
    """Parse a filter query string back into a Filter."""
    return FilterParser(text, serializer).parse()


def parse_sort(text: str) -> Sort:
    """Parse ``Sort(<pointer>, +|-)``."""
    match = _SORT_PATTERN.match(text)
    if not match:
        raise ParseError(f"Invalid sort expression: {text!r}")
    try:
        path = Pointer.parse(match.group("path"))
    except ArgumentError as e:
        raise ParseError(f"Invalid sort pointer in {text!r}: {e}") from e
    return Sort(path, descending=match.group("direction") == "-")


def parse_range(text: str) -> Range:
    """Parse ``range(<start>, <count>)``."""
    match = _RANGE_PATTERN.match(text)
    if not match:
        raise ParseError(f"Invalid range expression: {text!r}")
    return Range(int(match.group("start")), int(match.group("count")))


# =============================================================================
# YAML definitions
# =============================================================================

class QueryParser:
    """
    Parser for declarative query definitions.

    Converts dictionaries (usually loaded from YAML) into an ordered list
    of Query values. Without a ``pipeline`` key the order is filter, sort,
    then range.
    """

    def __init__(self, filter_serializer: Optional[Callable[[Filter], str]] = None):
        self.filter_serializer = filter_serializer

    def parse(self, definition: Dict[str, Any]) -> List[Query]:
        if not isinstance(definition, dict):
            raise ParseError(f"Query definition must be a dictionary, got {type(definition)}")

        if "pipeline" in definition:
            stages = definition["pipeline"]
            if not isinstance(stages, list):
                raise ParseError("'pipeline' must be a list of stages")
            queries: List[Query] = []
            for stage in stages:
                queries.extend(self.parse(stage))
            return queries

        unknown = set(definition) - {"filter", "sort", "order", "range", "limit", "offset"}
        if unknown:
            raise ParseError(f"Unknown query keys: {', '.join(sorted(unknown))}")

        queries = []
        if "filter" in definition:
            queries.append(self._parse_filter(definition["filter"]))

        # Legacy 'order' support
        sort_spec = definition.get("sort", definition.get("order"))
        if sort_spec is not None:
            queries.append(self._parse_sort(sort_spec))

        if "range" in definition:
            queries.append(self._parse_range(definition["range"]))
        elif "limit" in definition or "offset" in definition:
            queries.append(self._make_range(definition.get("offset", 0), definition.get("limit")))

        return queries

    def _parse_filter(self, spec: Any) -> Filter:
        if isinstance(spec, str):
            return parse_filter(spec, self.filter_serializer)
        if isinstance(spec, list):
            # A list of expressions is ANDed together
            result: Optional[Filter] = None
            for entry in spec:
                parsed = self._parse_filter(entry)
                result = parsed if result is None else result.and_(parsed)
            return result or Filter(serializer=self.filter_serializer)
        raise ParseError(f"Filter must be a query string or a list of them, got {type(spec)}")

    def _parse_sort(self, spec: Any) -> Sort:
        if isinstance(spec, dict):
            path = spec.get("path", spec.get("field"))
            if not path:
                raise ParseError("Sort definition requires 'path'")
            descending = spec.get("descending")
            if descending is None:
                descending = str(spec.get("direction", "asc")).lower() == "desc"
            return Sort(path, descending=bool(descending))

        if not isinstance(spec, str) or not spec.strip():
            raise ParseError(f"Invalid sort definition: {spec!r}")

        if spec.strip().lower().startswith("sort("):
            return parse_sort(spec)

        tokens = spec.split()
        direction = tokens[1].lower() if len(tokens) > 1 else "asc"
        if len(tokens) > 2 or direction not in ("asc", "desc"):
            raise ParseError(f"Invalid sort definition: {spec!r}")
        return Sort(tokens[0], descending=direction == "desc")

    def _parse_range(self, spec: Any) -> Range:
        if isinstance(spec, str):
            return parse_range(spec)
        if isinstance(spec, (list, tuple)) and len(spec) == 2:
            return self._make_range(spec[0], spec[1])
        if isinstance(spec, dict):
            return self._make_range(spec.get("start", 0), spec.get("count"))
        raise ParseError(f"Invalid range definition: {spec!r}")

    @staticmethod
    def _make_range(start: Any, count: Any) -> Range:
        if count is None:
            raise ParseError("Range definition requires a count")
        try:
            return Range(int(start), int(count))
        except (TypeError, ValueError) as e:
            raise ParseError(f"Invalid range bounds ({start!r}, {count!r}): {e}") from e


def parse_query(definition: Dict[str, Any], filter_serializer: Optional[Callable[[Filter], str]] = None) -> List[Query]:
    """Parse a single query definition into a pipeline."""
    return QueryParser(filter_serializer).parse(definition)


def load_queries_string(text: str) -> Dict[str, List[Query]]:
    """Parse named query definitions from a YAML string."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(f"Query file must contain a dictionary, got {type(data)}")

    parser = QueryParser()
    queries = {}
    for name, definition in data.items():
        try:
            queries[name] = parser.parse(definition)
        except ParseError as e:
            raise ParseError(f"Query {name!r}: {e}") from e
    return queries


def parse_queries_file(path: Union[str, Path]) -> Dict[str, List[Query]]:
    """Parse a YAML file of named query definitions."""
    path = Path(path)
    if not path.exists():
        raise ParseError(f"Query file not found: {path}")
    return load_queries_string(path.read_text(encoding="utf-8"))
