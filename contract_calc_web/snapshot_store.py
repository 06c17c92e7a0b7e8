"""Persistence layer for canonical monthly snapshots.

The engines are stateless; this store is where a caller keeps the snapshot it
considers canonical for a period. There is at most one row per (month, year):
saving a snapshot for a period that already has one replaces it. It defaults
to SQLite for local development, but accepts any SQLAlchemy-compatible URL.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import Column, DateTime, Integer, Text, UniqueConstraint, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from contract_calc.data_models import MonthlySnapshot
from contract_calc.serialization import snapshot_from_dict, snapshot_to_dict

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotModel(Base):
    __tablename__ = "monthly_snapshots"
    __table_args__ = (UniqueConstraint("year", "month", name="uq_snapshot_period"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    year = Column(Integer, nullable=False, index=True)
    month = Column(Integer, nullable=False)
    snapshot_json = Column(Text, nullable=False)
    saved_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class SnapshotStore:
    """Database-backed store keyed by calendar period."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def save_snapshot(self, snapshot: MonthlySnapshot) -> None:
        """Store ``snapshot`` as the canonical one for its period."""
        payload = json.dumps(snapshot_to_dict(snapshot))
        with self._session_factory() as session:
            row = session.execute(
                select(SnapshotModel).where(
                    SnapshotModel.year == snapshot.year,
                    SnapshotModel.month == snapshot.month,
                )
            ).scalar_one_or_none()
            if row is None:
                session.add(
                    SnapshotModel(year=snapshot.year, month=snapshot.month, snapshot_json=payload)
                )
            else:
                row.snapshot_json = payload
                row.saved_at = _utcnow()
            session.commit()

    def get_snapshot(self, month: int, year: int) -> Optional[MonthlySnapshot]:
        with self._session_factory() as session:
            row = session.execute(
                select(SnapshotModel).where(SnapshotModel.year == year, SnapshotModel.month == month)
            ).scalar_one_or_none()
            return self._to_snapshot(row) if row else None

    def list_snapshots(self) -> List[MonthlySnapshot]:
        with self._session_factory() as session:
            rows: Iterable[SnapshotModel] = session.execute(
                select(SnapshotModel).order_by(SnapshotModel.year.asc(), SnapshotModel.month.asc())
            ).scalars()
            return [self._to_snapshot(row) for row in rows]

    def delete_snapshot(self, month: int, year: int) -> bool:
        """Remove the snapshot for a period. Returns False if there was none."""
        with self._session_factory() as session:
            row = session.execute(
                select(SnapshotModel).where(SnapshotModel.year == year, SnapshotModel.month == month)
            ).scalar_one_or_none()
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    @staticmethod
    def _to_snapshot(row: SnapshotModel) -> MonthlySnapshot:
        return snapshot_from_dict(json.loads(row.snapshot_json))


def create_store_from_env(url: str | None) -> SnapshotStore:
    return SnapshotStore(url or "sqlite:///snapshots.sqlite3")
