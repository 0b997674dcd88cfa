# rwclimate/inspector.py
"""
Click-to-query value inspection.

Every click gets a sequence number. Readings are published last-writer-wins: a
reading that comes back after a newer click's reading has been published is
dropped, so the panel always shows the most recent click.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from rwclimate.builders import PointQuery

NO_DATA = "no data"


def format_reading(value: Optional[float], unit: str) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return NO_DATA
    return f"{value:.2f}{unit}"


@dataclass
class ClickReading:
    seq: int
    lon: float
    lat: float
    values: Dict[str, Optional[float]]
    labels: Dict[str, str] = field(default_factory=dict)

    def summary(self, names: Dict[str, str]) -> str:
        parts = [f"{names.get(k, k)}: {v}" for k, v in self.labels.items()]
        return f"Location Analysis ({self.lat:.4f}, {self.lon:.4f}): " + " | ".join(parts)


class ClickInspector:
    """Issues click sequence numbers and keeps the newest published reading."""

    def __init__(self):
        self._issued = 0
        self._published = 0
        self.latest: Optional[ClickReading] = None

    def begin(self) -> int:
        self._issued += 1
        return self._issued

    def publish(self, reading: ClickReading) -> bool:
        if reading.seq <= self._published:
            print(f"[INFO] Dropping stale click reading #{reading.seq} (showing #{self._published})")
            return False
        self._published = reading.seq
        self.latest = reading
        return True

    def inspect(self, lon: float, lat: float, queries: List[PointQuery],
                fetch: Callable[[List[PointQuery]], Dict[str, Optional[float]]]) -> Optional[ClickReading]:
        """
        Runs one click end to end. Returns the reading if it was published,
        None if a newer click overtook it.
        """
        seq = self.begin()
        values = fetch(queries)
        labels = {q.composite_key: format_reading(values.get(q.composite_key), q.unit) for q in queries}
        reading = ClickReading(seq=seq, lon=float(lon), lat=float(lat), values=values, labels=labels)
        return reading if self.publish(reading) else None
