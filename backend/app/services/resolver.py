"""
Identifier Resolver - Entity matching across loosely-typed records

Backend records arrive with a mix of `id`/`_id`, camelCase/snake_case and
id-vs-name references (jobs created before a company entity existed only
carry the company name). A single-key join misses those, so matching walks
an ordered list of candidate key pairs and stops at the first pair that is
comparable on both sides and equal.

Comparison rules:
    - "id" pairs: exact equality after coercion to string
    - "name" pairs: case-insensitive equality after trimming

A side with no usable value (missing, None, blank, nested object) makes the
pair non-comparable; it is skipped rather than treated as an error.

Usage:
    match(job, company, [KeyPair("company_id", "id"),
                         KeyPair("company_name", "name", kind="name")])
"""

from typing import Any, Iterable, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

FieldRef = Union[str, Tuple[str, ...]]

ANONYMOUS_SCOPE = "anonymous"


class KeyPair(NamedTuple):
    """
    One candidate join condition.

    Attributes:
        left: Field path (or alias paths, first usable wins) on the first record
        right: Field path (or alias paths) on the second record
        kind: "id" for exact string comparison, "name" for casefolded comparison
    """
    left: FieldRef
    right: FieldRef
    kind: str = "id"


# Join policies used by the association builder (typed record attributes)
JOB_COMPANY_ID = KeyPair("company_id", "id")
JOB_COMPANY_NAME = KeyPair("company_name", "name", kind="name")
APPLICATION_JOB_ID = KeyPair("job_id", "id")

JOB_TO_COMPANY: Tuple[KeyPair, ...] = (JOB_COMPANY_ID, JOB_COMPANY_NAME)


def lookup(record: Any, path: str) -> Any:
    """
    Read a dotted path from a mapping or an object.

    `lookup({"company": {"_id": 7}}, "company._id")` returns 7. Missing
    segments return None.
    """
    current = record
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


def is_usable(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def key_value(record: Any, ref: FieldRef, kind: str = "id") -> Optional[str]:
    """Comparable key for one side of a pair, or None if there is none."""
    paths = (ref,) if isinstance(ref, str) else tuple(ref)
    for path in paths:
        value = lookup(record, path)
        if not is_usable(value):
            continue
        # Nested objects and flags are never join keys
        if isinstance(value, (Mapping, list, tuple, set, bool)):
            continue
        text = str(value)
        if kind == "name":
            return text.strip().casefold()
        return text
    return None


def as_key_pair(pair: Union[KeyPair, Sequence[Any]]) -> KeyPair:
    """
    Accept plain 2-tuples as well as KeyPair.

    A bare pair is compared as a name when either side's field is a name
    field (last path segment ending in "name"), otherwise as an id.
    """
    if isinstance(pair, KeyPair):
        return pair
    left, right = pair[0], pair[1]
    kind = "name" if _is_name_field(left) or _is_name_field(right) else "id"
    return KeyPair(left, right, kind)


def _is_name_field(ref: FieldRef) -> bool:
    paths = (ref,) if isinstance(ref, str) else tuple(ref)
    return any(path.rsplit(".", 1)[-1].lower().endswith("name") for path in paths)


def match(
    a: Any,
    b: Any,
    key_pairs: Iterable[Union[KeyPair, Sequence[Any]]],
) -> bool:
    """
    Decide whether two records refer to the same logical entity.

    Args:
        a: First record (mapping or object)
        b: Second record (mapping or object)
        key_pairs: Ordered candidate pairs; the first comparable, equal pair wins

    Returns:
        True on the first satisfied pair, False if no pair is comparable
        or none match
    """
    for raw_pair in key_pairs:
        pair = as_key_pair(raw_pair)
        left = key_value(a, pair.left, pair.kind)
        if left is None:
            continue
        right = key_value(b, pair.right, pair.kind)
        if right is None:
            continue
        if left == right:
            return True
    return False


def resolve_identity_scope(user: Any) -> str:
    """
    Storage namespace for the authenticated user.

    Accepts a user mapping/object (`id` preferred over `_id`) or a plain
    identifier string. Falls back to "anonymous" when no identity is
    available.
    """
    if user is None:
        return ANONYMOUS_SCOPE
    if isinstance(user, str):
        return user.strip() or ANONYMOUS_SCOPE
    if isinstance(user, (int, float)) and not isinstance(user, bool):
        return str(user)
    value = key_value(user, ("id", "_id"))
    return value.strip() if value and value.strip() else ANONYMOUS_SCOPE


def scoped_key(prefix: str, scope: str) -> str:
    return f"{prefix}_{scope}"
