"""Supabase repository for progress cycles."""

from dataclasses import dataclass
from datetime import UTC, date, datetime

from supabase import Client

from meal_scan.domain.progress import ProgressData
from meal_scan.services.progress import ProgressRepository


@dataclass
class SupabaseProgressRepository(ProgressRepository):
    """Supabase implementation for the per-user progress row."""

    client: Client

    def get_progress(self, user_id: str) -> ProgressData:
        """Return stored progress, or an empty cycle."""
        response = (
            self.client.table("progress")
            .select("cycle_start_date, active_days, last_evaluation")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return ProgressData()
        row = response.data[0]
        start_raw = row.get("cycle_start_date")
        return ProgressData(
            cycle_start_date=date.fromisoformat(start_raw[:10]) if start_raw else None,
            active_days=tuple(str(day) for day in row.get("active_days") or []),
            last_evaluation=row.get("last_evaluation"),
        )

    def save_progress(self, user_id: str, data: ProgressData) -> None:
        """Replace the progress row."""
        self.client.table("progress").upsert(
            {
                "user_id": user_id,
                "cycle_start_date": (
                    data.cycle_start_date.isoformat() if data.cycle_start_date else None
                ),
                "active_days": list(data.active_days),
                "last_evaluation": data.last_evaluation,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="user_id",
        ).execute()
