"""
CSV export of a merged weekly schedule.

One row per schedule item, ordered by weekday and start time.
"""

import csv
from pathlib import Path
from typing import Dict, List

from .models import ScheduleItem, WEEKDAYS
from .week_utils import format_hour


class ScheduleExportError(Exception):
    """Raised when schedule export fails."""
    pass


def item_to_csv_row(item: ScheduleItem) -> Dict[str, str]:
    """
    Convert a schedule item to a CSV row dictionary.

    Returns:
        Dictionary with all CSV columns
    """
    return {
        'day': item.day,
        'start': format_hour(item.start_hour),
        'end': format_hour(item.end_hour),
        'duration_minutes': str(item.duration_minutes),
        'kind': item.kind,
        'title': item.title,
        'source': item.source or '',
        'locked': 'yes' if item.locked else 'no',
        'placement': item.placement,
        'source_id': item.source_id or '',
    }


class ScheduleCSVWriter:
    """
    Writes a weekly schedule to a CSV file.
    """

    CSV_HEADERS = [
        'day',
        'start',
        'end',
        'duration_minutes',
        'kind',
        'title',
        'source',
        'locked',
        'placement',
        'source_id',
    ]

    def __init__(self, output_path: str, force: bool = False):
        """
        Initialize the writer.

        Args:
            output_path: Path where the CSV will be saved
            force: Whether to overwrite an existing file

        Raises:
            ScheduleExportError: If the file exists and force is False
        """
        self.output_path = Path(output_path)
        self.force = force

        if self.output_path.exists() and not self.force:
            raise ScheduleExportError(
                f"Output file already exists: {self.output_path}. Use --force to overwrite."
            )

    def write(self, items: List[ScheduleItem]) -> Path:
        """
        Write the schedule.

        Args:
            items: Schedule items (any order)

        Returns:
            Absolute path of the written file

        Raises:
            ScheduleExportError: If writing fails
        """
        ordered = sorted(items, key=lambda i: (WEEKDAYS.index(i.day), i.start_hour, i.title))

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.output_path, 'w', encoding='utf-8', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=self.CSV_HEADERS)
                writer.writeheader()
                for item in ordered:
                    writer.writerow(item_to_csv_row(item))

            return self.output_path.absolute()

        except Exception as e:
            raise ScheduleExportError(f"Failed to write CSV file: {e}")


def export_schedule(items: List[ScheduleItem], output_path: str, force: bool = False) -> Path:
    """
    Convenience function to write a schedule CSV.

    Raises:
        ScheduleExportError: If export fails
    """
    return ScheduleCSVWriter(output_path, force=force).write(items)
