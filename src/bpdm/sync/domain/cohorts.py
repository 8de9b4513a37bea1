"""Create/update cohort split for Gate records."""

from collections.abc import Iterable
from typing import TypeVar

from .entities import GateRecord

R = TypeVar("R", bound=GateRecord)


def partition_by_bpn(records: Iterable[R]) -> tuple[list[R], list[R]]:
    """Split records into (to_create, to_update).

    A record without BPN has never reached the Pool and must be created; a
    record with a BPN is updated. Input order is preserved in both lists.
    """
    to_create: list[R] = []
    to_update: list[R] = []
    for record in records:
        if record.bpn is None:
            to_create.append(record)
        else:
            to_update.append(record)
    return to_create, to_update
