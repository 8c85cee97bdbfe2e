"""
Rule tree patching for property rule updates

Patches follow RFC 6902 (JSON Patch) with RFC 6901 pointers. Path segments
may also use the bracket form ``behaviors[0]`` accepted by the Property
Manager UI, which is read as ``behaviors/0``.
"""

import copy
import re
from typing import Any, Dict, Iterable, List, Union

from .exceptions import PatchError, RuleValidationError
from .models import PatchOp, RulePatch

_BRACKETED = re.compile(r"^([^\[\]]+)((?:\[\d+\])+)$")
_INDEX = re.compile(r"\[(\d+)\]")


def split_pointer(path: str, op: str = "get") -> List[str]:
    """Split a JSON pointer into unescaped reference tokens"""
    if path == "":
        return []
    if not path.startswith("/"):
        raise PatchError(op, path, "path must start with '/'")

    tokens = []
    for raw in path[1:].split("/"):
        token = raw.replace("~1", "/").replace("~0", "~")
        match = _BRACKETED.match(token)
        if match:
            tokens.append(match.group(1))
            tokens.extend(_INDEX.findall(match.group(2)))
        else:
            tokens.append(token)
    return tokens


def _array_index(array: list, token: str, op: str, path: str, allow_end: bool) -> int:
    if token == "-" and allow_end:
        return len(array)
    try:
        index = int(token)
    except ValueError:
        raise PatchError(op, path, f"'{token}' is not an array index")

    upper = len(array) if allow_end else len(array) - 1
    if index < 0 or index > upper:
        raise PatchError(op, path, f"index {index} is out of range")
    return index


def _child(container: Any, token: str, op: str, path: str) -> Any:
    if isinstance(container, list):
        return container[_array_index(container, token, op, path, allow_end=False)]
    if isinstance(container, dict):
        if token not in container:
            raise PatchError(op, path, f"'{token}' does not exist")
        return container[token]
    raise PatchError(op, path, "cannot traverse into a scalar value")


def _parent(document: Any, tokens: List[str], op: str, path: str):
    current = document
    for token in tokens[:-1]:
        current = _child(current, token, op, path)
    return current, tokens[-1]


def get_value(document: Any, path: str, op: str = "get") -> Any:
    current = document
    for token in split_pointer(path, op):
        current = _child(current, token, op, path)
    return current


def _add(document: Any, path: str, value: Any, op: str = "add") -> Any:
    tokens = split_pointer(path, op)
    if not tokens:
        return value

    parent, last = _parent(document, tokens, op, path)
    if isinstance(parent, list):
        parent.insert(_array_index(parent, last, op, path, allow_end=True), value)
    elif isinstance(parent, dict):
        parent[last] = value
    else:
        raise PatchError(op, path, "parent is not an object or array")
    return document


def _remove(document: Any, path: str, op: str = "remove") -> Any:
    tokens = split_pointer(path, op)
    if not tokens:
        raise PatchError(op, path, "cannot remove the document root")

    parent, last = _parent(document, tokens, op, path)
    if isinstance(parent, list):
        return parent.pop(_array_index(parent, last, op, path, allow_end=False))
    if isinstance(parent, dict):
        if last not in parent:
            raise PatchError(op, path, f"'{last}' does not exist")
        return parent.pop(last)
    raise PatchError(op, path, "parent is not an object or array")


def _replace(document: Any, path: str, value: Any, op: str = "replace") -> Any:
    tokens = split_pointer(path, op)
    if not tokens:
        return value

    parent, last = _parent(document, tokens, op, path)
    if isinstance(parent, list):
        parent[_array_index(parent, last, op, path, allow_end=False)] = value
    elif isinstance(parent, dict):
        if last not in parent:
            raise PatchError(op, path, f"'{last}' does not exist")
        parent[last] = value
    else:
        raise PatchError(op, path, "parent is not an object or array")
    return document


def apply_patches(
    document: Any, patches: Iterable[Union[RulePatch, Dict[str, Any]]]
) -> Any:
    """Apply patches to a deep copy of document and return the copy

    Raises:
        PatchError: If any patch cannot be applied; the input is untouched
    """
    result = copy.deepcopy(document)

    for raw in patches:
        patch = raw if isinstance(raw, RulePatch) else RulePatch.model_validate(raw)
        op = patch.op.value

        if patch.op == PatchOp.ADD:
            result = _add(result, patch.path, copy.deepcopy(patch.value))
        elif patch.op == PatchOp.REMOVE:
            _remove(result, patch.path)
        elif patch.op == PatchOp.REPLACE:
            result = _replace(result, patch.path, copy.deepcopy(patch.value))
        elif patch.op in (PatchOp.COPY, PatchOp.MOVE):
            if patch.from_ is None:
                raise PatchError(op, patch.path, "'from' is required")
            if patch.op == PatchOp.MOVE:
                if patch.path.startswith(patch.from_ + "/"):
                    raise PatchError(
                        op, patch.path, "cannot move into a child of itself"
                    )
                value = _remove(result, patch.from_, op)
            else:
                value = copy.deepcopy(get_value(result, patch.from_, op))
            result = _add(result, patch.path, value, op)
        elif patch.op == PatchOp.TEST:
            if get_value(result, patch.path, op) != patch.value:
                raise PatchError(op, patch.path, "value does not match")

    return result


def validate_rule_tree(rules: Any):
    """Check the minimal structure PAPI requires of a rule tree"""
    if not isinstance(rules, dict):
        raise RuleValidationError("rule tree must be an object")
    if not rules.get("name"):
        raise RuleValidationError("missing 'name'")
    if not isinstance(rules.get("behaviors"), list):
        raise RuleValidationError("missing 'behaviors' list")
    children = rules.get("children", [])
    if not isinstance(children, list):
        raise RuleValidationError("'children' must be a list")
    for child in children:
        if not isinstance(child, dict) or not child.get("name"):
            raise RuleValidationError("every child rule needs a 'name'")
