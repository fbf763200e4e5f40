"""Sprint/period planning.

Closed sprints are ordered by start date, the most recent ``max_sprints`` are
kept and partitioned into periods of ``sprints_per_period`` sprints each.
When the count does not divide evenly the short group comes first, so the
newest periods are always complete.
"""

import logging

from .models import Period, Sprint, date_part, parse_timestamp

logger = logging.getLogger(__name__)


def partition_leading(items, size):
    """Split ``items`` into consecutive groups of ``size``.

    Any remainder forms a shorter group at the start of the result:
    11 items in groups of 4 gives sizes ``[3, 4, 4]``.
    """
    items = list(items)
    if size <= 1:
        return [[item] for item in items]

    groups = []
    remainder = len(items) % size
    if remainder:
        groups.append(items[:remainder])

    for i in range(remainder, len(items), size):
        groups.append(items[i : i + size])

    return groups


def select_closed_sprints(sprints, max_sprints=None):
    """Return the most recent closed sprints that have start and end dates,
    oldest first.
    """
    sprints = [s if isinstance(s, Sprint) else Sprint.from_dict(s) for s in sprints]
    closed = [s for s in sprints if s.is_closed and s.start_date and s.end_date]
    closed.sort(key=lambda s: parse_timestamp(s.start_date))

    logger.info("Found %d closed sprints", len(closed))

    if max_sprints:
        closed = closed[-max_sprints:]
        logger.info("Using the last %d sprints", len(closed))

    return closed


def create_periods_from_sprints(sprints, sprints_per_period):
    """Build periods from sprints already ordered oldest first.

    A group whose first sprint has no start date or whose last sprint has no
    end date cannot be dated and is dropped with a warning. Period numbers
    follow the group position, so a dropped group leaves a gap.
    """
    periods = []

    for number, group in enumerate(partition_leading(sprints, sprints_per_period), 1):
        first, last = group[0], group[-1]
        start_date = date_part(first.start_date)
        end_date = date_part(last.end_date)

        if not start_date or not end_date:
            logger.warning(
                "Dropping period %d (%s): boundary sprint has no %s date",
                number,
                ", ".join(s.name for s in group),
                "start" if not start_date else "end",
            )
            continue

        periods.append(
            Period(
                id=f"period{number}",
                label=f"{start_date} - {end_date}",
                start_date=start_date,
                end_date=end_date,
                sprint_ids=[s.id for s in group],
                sprint_names=[s.name for s in group],
            )
        )

    return periods


def plan_periods(sprints, sprints_per_period, max_sprints):
    """Plan the periods of a run from a board's full sprint list."""
    closed = select_closed_sprints(sprints, max_sprints)
    periods = create_periods_from_sprints(closed, sprints_per_period)
    logger.info("Planned %d periods", len(periods))
    return periods
