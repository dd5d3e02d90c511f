"""
Revision numbers for registry entries.

Revisions are unsigned 64-bit integers. A write uses the prior revision + 1,
or 0 when there is no prior entry. An entry at MAX_REVISION can never be
updated again; the caller has to move to a new data key.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import RevisionOverflowError, ValidationError
from .models import RegistryEntry

logger = logging.getLogger(__name__)

MAX_REVISION = 2**64 - 1


def assert_uint64(value: Any) -> None:
    """Check that a value fits in a 64-bit unsigned integer.

    Raises:
        ValidationError: If value is not an int, is negative, or exceeds 2^64-1
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"Expected parameter 'revision' to be type 'int', was type '{type(value).__name__}'",
            name="revision",
        )
    if value < 0:
        raise ValidationError(
            f"Argument {value} must be an unsigned 64-bit integer; was negative",
            name="revision",
        )
    if value > MAX_REVISION:
        raise ValidationError(
            f"Argument {value} does not fit in a 64-bit unsigned integer; exceeds 2^64-1",
            name="revision",
        )


def next_revision(prior_entry: Optional[RegistryEntry]) -> int:
    """Compute the revision for the next write.

    Args:
        prior_entry: The current entry, or None if the key was never written

    Returns:
        0 for a new key, else prior revision + 1

    Raises:
        RevisionOverflowError: If the prior entry is already at MAX_REVISION
    """
    if prior_entry is None:
        return 0

    revision = prior_entry.revision + 1
    if revision > MAX_REVISION:
        logger.warning("Registry entry %r is at the maximum revision", prior_entry.data_key)
        raise RevisionOverflowError(
            "Current entry already has maximum allowed revision, could not update the entry",
            revision=prior_entry.revision,
        )
    return revision
