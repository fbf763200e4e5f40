"""Value objects shared by the extraction pipeline.

Sprints come straight from the Agile API; periods are planned once per run
and persisted into ``config.json``.
"""

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import dateutil.parser


def date_part(value):
    """Return the ``YYYY-MM-DD`` portion of an ISO timestamp, or ``""``."""
    if not value:
        return ""
    return str(value).split("T")[0]


def parse_timestamp(value):
    """Parse an ISO timestamp into an aware datetime (naive values are UTC)."""
    if not value:
        return None
    parsed = dateutil.parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


@dataclass(frozen=True)
class Sprint:
    """A sprint as returned by ``/board/{id}/sprint``."""

    id: int
    name: str
    state: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    complete_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sprint":
        return cls(
            id=data["id"],
            name=data.get("name") or str(data["id"]),
            state=data.get("state") or "",
            start_date=data.get("startDate") or None,
            end_date=data.get("endDate") or None,
            complete_date=data.get("completeDate") or None,
        )

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"


@dataclass(frozen=True)
class Period:
    """A window of consecutive closed sprints, the unit of aggregation."""

    id: str
    label: str
    start_date: str
    end_date: str
    sprint_ids: List[int] = field(default_factory=list)
    sprint_names: List[str] = field(default_factory=list)

    @property
    def data_file(self) -> str:
        return f"{self.id}.json"

    def to_config(self) -> Dict[str, str]:
        """Entry for the ``periods`` list of ``config.json``."""
        return {
            "id": self.id,
            "label": self.label,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "dataFile": self.data_file,
        }


@dataclass(frozen=True)
class SprintBacklogSample:
    """Number of bugs open in the backlog when a sprint was completed."""

    sprint: str
    start_date: str
    end_date: str
    backlog_bugs: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sprint": self.sprint,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "backlogBugs": self.backlog_bugs,
        }
