"""CSV import of feedback items."""
from datetime import date, datetime, timezone
from pathlib import Path

import pandas as pd

from .models import FeedbackItem, InputKind

BODY_COLUMNS = ("body", "feedback", "original_message")
DATE_COLUMNS = ("created_at", "ds")


def _first_column(df: pd.DataFrame, candidates: tuple[str, ...]) -> str | None:
    for name in candidates:
        if name in df.columns:
            return name
    return None


def _parse_timestamp(value) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional(row, column: str) -> str | None:
    value = row.get(column)
    if value is None or pd.isna(value) or str(value).strip() == "":
        return None
    return str(value).strip()


def load_feedback(
    csv_path: Path,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[FeedbackItem]:
    """Load feedback items from CSV.

    Expects a body column (``body``, ``feedback`` or ``original_message``) and
    optionally ``created_at``/``ds``, ``inquiry_id`` and ``department_id``.
    Rows with an ``inquiry_id`` become inquiry responses; the rest are general
    feedback. Rows with empty bodies are skipped.
    """
    df = pd.read_csv(csv_path, dtype=str)

    body_column = _first_column(df, BODY_COLUMNS)
    if body_column is None:
        raise ValueError(f"{csv_path} has no body column (expected one of {', '.join(BODY_COLUMNS)})")
    date_column = _first_column(df, DATE_COLUMNS)

    items = []
    for idx, row in df.iterrows():
        body = row.get(body_column, "")
        if pd.isna(body) or not str(body).strip():
            continue

        created_at = _parse_timestamp(row.get(date_column)) if date_column else None

        # Filter by date range if specified
        if created_at is not None:
            if start_date is not None and created_at.date() < start_date:
                continue
            if end_date is not None and created_at.date() > end_date:
                continue

        inquiry_id = _optional(row, "inquiry_id")
        item = FeedbackItem(
            id=_optional(row, "id") or f"feedback_{idx}",
            body=str(body).strip(),
            kind=InputKind.INQUIRY if inquiry_id else InputKind.GENERAL,
            inquiry_id=inquiry_id,
            department_id=_optional(row, "department_id"),
        )
        if created_at is not None:
            item.created_at = created_at
            item.updated_at = created_at
        items.append(item)

    return items
