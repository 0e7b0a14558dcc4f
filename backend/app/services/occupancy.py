from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.models.observation import Observation, ObservationStatus


@dataclass
class OccupancyIndex:
    """Booked periods on one date, keyed by teacher id and by role."""

    on_date: date
    observed: dict[str, set[int]] = field(default_factory=lambda: defaultdict(set))
    observing: dict[str, set[int]] = field(default_factory=lambda: defaultdict(set))

    @classmethod
    def for_date(
        cls,
        db: Session,
        on_date: date,
        teacher_ids: set[str] | list[str],
        *,
        exclude_observation_id: str | None = None,
    ) -> "OccupancyIndex":
        index = cls(on_date=on_date)
        ids = [item for item in dict.fromkeys(teacher_ids) if item]
        if not ids:
            return index
        query = select(Observation).where(
            Observation.observation_date == on_date,
            Observation.status != ObservationStatus.canceled,
            or_(Observation.teacher_id.in_(ids), Observation.observer_id.in_(ids)),
        )
        if exclude_observation_id:
            query = query.where(Observation.id != exclude_observation_id)
        for row in db.execute(query).scalars():
            index.observed[row.teacher_id].update(row.periods)
            index.observing[row.observer_id].update(row.periods)
        return index

    def observed_periods(self, teacher_id: str) -> set[int]:
        return self.observed.get(teacher_id, set())

    def observing_periods(self, teacher_id: str) -> set[int]:
        return self.observing.get(teacher_id, set())
