from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, normalize_mysql_time
from ..geo.distance import Coordinate
from ..timewindows.model import TimeWindow
from .model import Center, ContactInfo
from .repository import CenterRepository


class MySQLCenterRepository(CenterRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_centers(self) -> Sequence[Center]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT center_id, name, address, latitude, longitude, radius_m, is_active, late_grace_minutes,
                       contact_phone, contact_email, contact_manager
                FROM centers
                ORDER BY sort_order ASC, center_id ASC
                """
            )
            center_rows = fetchall(cur)

            cur.execute(
                """
                SELECT center_id, window_name, start_time, end_time
                FROM center_time_windows
                ORDER BY center_id ASC, sort_order ASC, window_id ASC
                """
            )
            window_rows = fetchall(cur)

        windows: Dict[str, List[TimeWindow]] = defaultdict(list)
        for w in window_rows:
            start = normalize_mysql_time(w["start_time"])
            end = normalize_mysql_time(w["end_time"])
            windows[str(w["center_id"])].append(
                TimeWindow(
                    name=w["window_name"],
                    start=start.hour * 60 + start.minute,
                    end=end.hour * 60 + end.minute,
                )
            )

        return [
            Center(
                center_id=str(r["center_id"]),
                name=r["name"],
                address=r.get("address") or "",
                coordinate=Coordinate(latitude=float(r["latitude"]), longitude=float(r["longitude"])),
                radius_m=float(r["radius_m"]),
                is_active=bool(r["is_active"]),
                late_grace_minutes=int(r["late_grace_minutes"]) if r.get("late_grace_minutes") is not None else None,
                time_windows=tuple(windows.get(str(r["center_id"]), ())),
                contact=ContactInfo(
                    phone=r.get("contact_phone"),
                    email=r.get("contact_email"),
                    manager=r.get("contact_manager"),
                ),
            )
            for r in center_rows
        ]
