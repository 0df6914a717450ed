"""File-backed meal repository for process-local persistence."""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from meal_capture.adapters.meal_records import (
    meal_from_record,
    meal_to_record,
    parse_timestamp,
)
from meal_capture.domain.meals import RecordedMeal
from meal_capture.services.meals import MealRepository, MealStorageError

_logger = logging.getLogger(__name__)


@dataclass
class JsonFileMealRepository(MealRepository):
    """Stores all meals as one JSON array, rewritten atomically on change."""

    path: Path

    def list_meals(self) -> list[RecordedMeal]:
        """Return every readable meal in the file."""
        meals = []
        for record in self._read():
            try:
                meals.append(meal_from_record(record))
            except (KeyError, TypeError, ValueError):
                _logger.warning("Skipping unreadable meal record in %s", self.path)
        return meals

    def insert_meal(self, meal: RecordedMeal) -> None:
        """Append a meal and rewrite the file."""
        records = self._read()
        records.append(meal_to_record(meal))
        self._write(records)

    def delete_meal(self, meal_id: str) -> bool:
        """Delete a meal by id."""
        records = self._read()
        kept = [record for record in records if record.get("id") != meal_id]
        if len(kept) == len(records):
            return False
        self._write(kept)
        return True

    def delete_before(self, cutoff: datetime) -> int:
        """Delete meals older than the cutoff."""
        records = self._read()
        kept = [record for record in records if not _is_before(record, cutoff)]
        removed = len(records) - len(kept)
        if removed:
            self._write(kept)
        return removed

    def _read(self) -> list[dict[str, object]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as exc:
            raise MealStorageError(f"Failed to read meals from {self.path}") from exc
        if not isinstance(data, list):
            raise MealStorageError(f"Unexpected meal file format in {self.path}")
        return [record for record in data if isinstance(record, dict)]

    def _write(self, records: list[dict[str, object]]) -> None:
        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = tmp.name
                json.dump(records, tmp)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise MealStorageError(f"Failed to write meals to {self.path}") from exc


def _is_before(record: dict[str, object], cutoff: datetime) -> bool:
    try:
        return parse_timestamp(record["timestamp"]) < cutoff
    except (KeyError, TypeError, ValueError):
        return False
