"""
Recover a tool intent from free model text.

The model is asked to answer either with plain text / ``{"answer": "..."}`` or with
    {"tool": "<name>", "args": { ... }}
Models wrap that object in prose or markdown fences, use single quotes, or fall back to the
list form ``{"toolCalls": [{"name": ..., "args": {...}}]}``.  :func:`parse_tool_intent` accepts
all of these and returns a tagged result so callers can simply branch on its type.
"""

import ast
import json
import logging
import re
from typing import (
    Any,
    Dict,
    Mapping,
    Tuple,
    Union,
)

from pydantic import (
    BaseModel,
    Field,
)

logger = logging.getLogger(__name__)


class ToolCallParseError(RuntimeError):
    """Raised when an object names a tool but cannot be read as {"tool": ..., "args": {...}}"""


# ---------------------------------------------------------------------------
# Tagged result
# ---------------------------------------------------------------------------
class NoToolIntent(BaseModel):
    """The model answered directly; *text* is the answer to show the user."""

    text: str


class ToolIntent(BaseModel):
    """The model asked for one tool call."""

    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class Unparseable(BaseModel):
    """The model seems to want a tool but the request could not be recovered."""

    text: str
    reason: str


ParsedIntent = Union[NoToolIntent, ToolIntent, Unparseable]


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
_FENCE_RE = re.compile(r"```(?:json|python)?\s*(.+?)```", re.DOTALL)
_TOOL_HINT_RE = re.compile(r"""["'](?:tool|tool_calls|toolCalls)["']\s*:""")
_QUOTE_SET = {"'", '"'}


def _skip_quoted(s: str, i: int) -> int:
    """Given s[i] is a quote, return the index just past the closing quote."""
    quote = s[i]
    i += 1
    while i < len(s):
        ch = s[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    raise ToolCallParseError("unterminated string literal")


def _find_object(s: str) -> Tuple[int, int] | None:
    """Return (start, end) of the first balanced ``{...}`` in *s*, honouring quoted braces."""
    start = s.find("{")
    if start < 0:
        return None
    depth = 0
    i = start
    while i < len(s):
        ch = s[i]
        if ch in _QUOTE_SET and depth > 0:
            try:
                i = _skip_quoted(s, i)
            except ToolCallParseError:
                return None
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return start, i + 1
        i += 1
    return None


def _load_object(raw: str) -> Any:
    """JSON first, then Python literal syntax (single quotes, True/False/None)."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        pass
    try:
        return ast.literal_eval(raw)
    except (ValueError, SyntaxError, TypeError) as exc:  # TypeError: e.g. {{}} is an unhashable set
        raise ToolCallParseError(f"not a JSON or Python object: {exc}") from exc


def _coerce_args(args: Any) -> Dict[str, Any]:
    if args is None:
        return {}
    if isinstance(args, str):
        args = _load_object(args) if args.strip() else {}
    if not isinstance(args, Mapping):
        raise ToolCallParseError("'args' must be an object")
    return {str(k): v for k, v in args.items()}


def _tool_from_object(obj: Mapping[str, Any]) -> ToolIntent | None:
    """Interpret a decoded object; None means it carries no tool request."""
    if "tool" in obj:
        name = obj["tool"]
        if not isinstance(name, str) or not name.strip():
            raise ToolCallParseError("'tool' name is empty")
        return ToolIntent(name=name.strip(), args=_coerce_args(obj.get("args", obj.get("arguments"))))

    calls = obj.get("tool_calls", obj.get("toolCalls"))
    if calls is None or obj.get("needsTools") is False:
        return None
    if not isinstance(calls, list):
        raise ToolCallParseError("tool call list must be an array")
    if not calls:
        return None
    first = calls[0]
    if not isinstance(first, Mapping) or not isinstance(first.get("name"), str):
        raise ToolCallParseError("tool call entry must have a 'name'")
    if len(calls) > 1:
        logger.debug("Model requested %d tool calls; only '%s' is used", len(calls), first["name"])
    return ToolIntent(
        name=first["name"].strip(), args=_coerce_args(first.get("args", first.get("arguments")))
    )


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------
def parse_tool_intent(text: str) -> ParsedIntent:
    """
    Best-effort classification of a model completion.

    Returns
    -------
    ToolIntent
        A tool name plus its arguments.
    NoToolIntent
        Plain text, an ``{"answer": ...}`` object, or an object without a tool request.
    Unparseable
        Text that names a tool but whose object is malformed.

    Never raises.
    """
    body = text.strip()
    fenced = _FENCE_RE.search(body)
    candidate_src = fenced.group(1).strip() if fenced else body

    span = _find_object(candidate_src)
    if span is None:
        if _TOOL_HINT_RE.search(candidate_src):
            return Unparseable(text=text, reason="unbalanced braces")
        return NoToolIntent(text=body)

    candidate = candidate_src[span[0] : span[1]]
    try:
        obj = _load_object(candidate)
        if not isinstance(obj, Mapping):
            return NoToolIntent(text=body)
        intent = _tool_from_object(obj)
    except ToolCallParseError as exc:
        if _TOOL_HINT_RE.search(candidate):
            logger.warning("Could not parse tool intent: %s", exc)
            return Unparseable(text=text, reason=str(exc))
        return NoToolIntent(text=body)

    if intent is not None:
        return intent
    answer = obj.get("answer")
    if isinstance(answer, str) and answer.strip():
        return NoToolIntent(text=answer.strip())
    return NoToolIntent(text=body)
