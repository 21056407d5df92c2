"""CSV reading and writing for the ingestion pipeline.

The raw export is a ';'-delimited file whose text column is named
``original_chunk`` and which also carries embedding/model columns we discard.
Intermediate files (cleaned, categorized) use the canonical column names;
the categorized file stores the analysis as a JSON string column.
"""

import json
import logging
from pathlib import Path

import pandas as pd

from shared.models.record import RECORD_FIELDS, Record, decode_category_analysis

DEFAULT_DELIMITER = ";"
RAW_TEXT_COLUMN = "original_chunk"
ANALYSIS_JSON_COLUMN = "category_analysis_json"
CATEGORIZED_COLUMNS: tuple[str, ...] = (
    "id",
    "project_id",
    "asset_id",
    "content_type",
    "text",
    "category",
    ANALYSIS_JSON_COLUMN,
    "created_at",
    "updated_at",
)


def read_rows(path: str | Path, delimiter: str = DEFAULT_DELIMITER) -> list[dict]:
    """Read a CSV file into a list of row dicts. All values are kept as strings.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    df = pd.read_csv(
        path,
        sep=delimiter,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )
    return df.to_dict(orient="records")


def clean_rows(raw_rows: list[dict]) -> list[dict]:
    """Map raw export rows onto the canonical record columns.

    ``original_chunk`` becomes ``text`` (an existing ``text`` column is used
    when there is no ``original_chunk``). All other columns are dropped.
    Missing fields are left out so that validation reports them.
    """
    cleaned: list[dict] = []
    for row in raw_rows:
        out = {key: row[key] for key in RECORD_FIELDS if key in row and key != "text"}
        text = row.get(RAW_TEXT_COLUMN, row.get("text"))
        if text is not None:
            out["text"] = text
        cleaned.append(out)
    return cleaned


def write_cleaned(records: list[Record], path: str | Path, delimiter: str = DEFAULT_DELIMITER) -> None:
    rows = [record.model_dump(include=set(RECORD_FIELDS)) for record in records]
    df = pd.DataFrame(rows, columns=list(RECORD_FIELDS))
    _ensure_parent(path)
    df.to_csv(path, sep=delimiter, index=False)


def write_categorized(records: list[Record], path: str | Path, delimiter: str = DEFAULT_DELIMITER) -> None:
    """Write categorized records, flattening the analysis into ``category_analysis_json``."""
    rows = []
    for record in records:
        row = record.model_dump(include=set(RECORD_FIELDS))
        row["category"] = record.category or ""
        row[ANALYSIS_JSON_COLUMN] = (
            json.dumps(record.category_analysis.model_dump(), ensure_ascii=False) if record.category_analysis else ""
        )
        rows.append(row)
    df = pd.DataFrame(rows, columns=list(CATEGORIZED_COLUMNS))
    _ensure_parent(path)
    df.to_csv(path, sep=delimiter, index=False)


def read_categorized(path: str | Path, logger: logging.Logger, delimiter: str = DEFAULT_DELIMITER) -> list[dict]:
    """Read a categorized file back into row dicts ready for validation.

    ``category_analysis_json`` is decoded into ``category_analysis``; a value
    that fails to decode is logged as a warning on ``logger`` and left out.
    """
    rows = []
    for row in read_rows(path, delimiter):
        encoded = row.pop(ANALYSIS_JSON_COLUMN, "")
        if not row.get("category"):
            row.pop("category", None)
        decoded = decode_category_analysis(encoded)
        if decoded.value is not None:
            row["category_analysis"] = decoded.value
        elif not decoded.ok:
            logger.warning("Could not decode category analysis of record id=%s: %s", row.get("id"), decoded.error)
        rows.append(row)
    return rows


def _ensure_parent(path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
