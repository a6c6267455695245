from __future__ import annotations

from typing import Iterable

from .models import MembershipDelta


def diff(incoming: Iterable[str], previous: Iterable[str]) -> MembershipDelta:
    """
    Annotated symmetric difference of two member lists.

    UUIDs only in *incoming* map to ``False`` (added); UUIDs only in
    *previous* map to ``True`` (removed). Members present on both sides are
    absent from the result. Duplicates are tolerated. Iteration order follows
    *incoming* then *previous*.
    """
    incoming = list(incoming)
    previous = list(previous)
    incoming_set = set(incoming)
    previous_set = set(previous)

    delta: MembershipDelta = {}
    for uuid in incoming:
        if uuid not in previous_set:
            delta[uuid] = False
    for uuid in previous:
        if uuid not in incoming_set:
            delta[uuid] = True
    return delta


__all__ = ["diff"]
