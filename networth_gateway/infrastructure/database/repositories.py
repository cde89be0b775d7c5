"""Data access layer for stored estimates"""

from datetime import datetime
from typing import Optional

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from networth_gateway.domain.models import CacheEntry, Estimate, RefinedEstimate, LAYER1
from networth_gateway.infrastructure.database.models import NetworthEstimate
from networth_gateway.utils.time_utils import as_utc, expires_after, utc_now

UPSERT_DIALECTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class EstimateRepository:
    """
    Latest estimate per subject with a freshness window (default 24h).

    No history is kept: put() fully supersedes the previous row.
    """

    def __init__(self, db: Session, ttl_hours: int = 24):
        self.db = db
        self.ttl_hours = ttl_hours

    def get(self, subject_id: str, now: Optional[datetime] = None) -> Optional[CacheEntry]:
        """Fresh estimate for a subject, or None when absent or expired"""
        row = self.db.get(NetworthEstimate, subject_id)
        if row is None:
            return None

        now = now or utc_now()
        if as_utc(row.expires_at) <= now:
            return None

        return _to_entry(row)

    def put(
        self,
        subject_id: str,
        estimate: Estimate,
        refined: RefinedEstimate,
        computed_at: Optional[datetime] = None,
    ) -> CacheEntry:
        """
        Upsert the estimate for a subject in one INSERT ... ON CONFLICT statement.

        Two near-simultaneous writes for the same subject resolve to the last
        writer without a lost-update window.
        """
        computed_at = computed_at or utc_now()
        values = {
            "subject_id": subject_id,
            "layer1_low": estimate.low,
            "layer1_mid": estimate.mid,
            "layer1_high": estimate.high,
            "layer1_confidence": estimate.confidence,
            "layer1_signals": estimate.signals,
            "final_low": refined.final_low,
            "final_high": refined.final_high,
            "final_confidence": refined.confidence,
            "band_label": refined.band_label,
            "reasoning": refined.reasoning,
            "disclaimer": refined.disclaimer,
            "layer": refined.layer,
            "computed_at": computed_at,
            "expires_at": expires_after(computed_at, self.ttl_hours),
        }

        dialect = self.db.get_bind().dialect.name
        insert = UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Atomic upsert not supported for dialect {dialect}")

        stmt = insert(NetworthEstimate).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[NetworthEstimate.subject_id],
            set_={key: stmt.excluded[key] for key in values if key != "subject_id"},
        )
        self.db.execute(stmt)
        self.db.commit()

        return CacheEntry(
            subject_id=subject_id,
            estimate=estimate,
            refined=refined,
            computed_at=computed_at,
            expires_at=values["expires_at"],
        )


def _to_entry(row: NetworthEstimate) -> CacheEntry:
    return CacheEntry(
        subject_id=row.subject_id,
        estimate=Estimate(
            low=row.layer1_low,
            mid=row.layer1_mid,
            high=row.layer1_high,
            confidence=row.layer1_confidence,
            signals=row.layer1_signals,
            layer=LAYER1,
        ),
        refined=RefinedEstimate(
            final_low=row.final_low,
            final_high=row.final_high,
            band_label=row.band_label,
            reasoning=row.reasoning,
            confidence=row.final_confidence,
            disclaimer=row.disclaimer,
            layer=row.layer,
        ),
        computed_at=as_utc(row.computed_at),
        expires_at=as_utc(row.expires_at),
    )
