"""Match a parsed child name to one of the user's children."""

import logging

from daycare_sync.exceptions import AmbiguousChildMatch, ChildNotFound
from daycare_sync.models import Child

logger = logging.getLogger(__name__)


def resolve_child(
    child_name: str,
    children: list[Child],
    log: logging.Logger | logging.LoggerAdapter = logger,
) -> Child:
    """Resolve a parsed name against the user's roster in two passes.

    1. Exact, case-sensitive match on first name.
    2. Only if that finds nothing: case-insensitive substring match of the
       parsed name within each first name.

    Never picks among several candidates and never creates a child.

    Raises:
        ChildNotFound: No child matched.
        AmbiguousChildMatch: More than one child matched.
    """
    name = (child_name or "").strip()
    if not name:
        raise ChildNotFound("Parsed child name is empty")

    exact = [c for c in children if c.first_name == name]
    if len(exact) == 1:
        log.info("Matched child %s (%s) by exact first name", exact[0].full_name, exact[0].id)
        return exact[0]
    if len(exact) > 1:
        raise AmbiguousChildMatch(name, [c.full_name for c in exact])

    needle = name.casefold()
    partial = [c for c in children if needle in c.first_name.casefold()]
    if not partial:
        raise ChildNotFound(f"No child matching '{name}'")
    if len(partial) > 1:
        raise AmbiguousChildMatch(name, [c.full_name for c in partial])

    log.info("Matched child %s (%s) by partial first name", partial[0].full_name, partial[0].id)
    return partial[0]
