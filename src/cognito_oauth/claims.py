"""Map decoded ID token claims to identity fields."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cognito_oauth.errors import MissingClaimError

DEFAULT_INFO_FIELDS: tuple[str, ...] = ("email",)

SUBJECT_CLAIM = "sub"


@dataclass(frozen=True, slots=True)
class Identity:
    """Identity fields extracted from a claim set.

    Attributes:
        uid: Subject identifier.
        info: Requested claims present in the token, in requested order.
        raw_info: Copy of the full claim set, as decoded.
    """

    uid: str
    info: dict[str, Any]
    raw_info: dict[str, Any]


def extract_identity(
    claims: Mapping[str, Any],
    fields: Iterable[str | Enum] = DEFAULT_INFO_FIELDS,
) -> Identity:
    """Extract uid, info and raw claims from decoded ID token claims.

    Requested fields missing from the claims are left out of ``info``
    rather than set to None.

    Args:
        claims: Decoded claim mapping.
        fields: Claim names to copy into ``info``, in output order.

    Returns:
        The extracted Identity.

    Raises:
        MissingClaimError: If the ``sub`` claim is absent or empty.

    Examples:
        >>> identity = extract_identity({"sub": "42", "email": "a@b.c", "name": "A"})
        >>> identity.uid, identity.info
        ('42', {'email': 'a@b.c'})
        >>> extract_identity({"sub": "42", "name": "A"}, ["phone_number", "name"]).info
        {'name': 'A'}
    """
    subject = claims.get(SUBJECT_CLAIM)
    if subject is None or subject == "":
        raise MissingClaimError(SUBJECT_CLAIM)

    info: dict[str, Any] = {}
    for entry in fields:
        key = entry.value if isinstance(entry, Enum) else entry
        key = str(key)
        if key in claims and key not in info:
            info[key] = claims[key]

    return Identity(uid=str(subject), info=info, raw_info=dict(claims))


__all__ = [
    "DEFAULT_INFO_FIELDS",
    "SUBJECT_CLAIM",
    "Identity",
    "extract_identity",
]
