"""
Budget Catalog Ingestion - CSV, JSON and extracted-record uploads

Every format is parsed into a BudgetCatalog and then passed through the
same validate_catalog() gate before anything is saved:

- CSV: header row with at least `category,amount`; optional
  `description,committee_responsible,committee_oversight,abyip_ppa_activity`
- JSON: the catalog record itself (`totalBudget`, `items`)
- Extracted records: item-shaped records produced by the PDF extraction
  service; the total is the sum of their amounts

The PDF extraction service answers with JSON (`{"budgetItems": [...]}`),
sometimes wrapped in a markdown code fence, and occasionally with plain
text. parse_extraction_response() handles all three.
"""

import io
import json
import math
import re
from pathlib import Path
from typing import Any

import pandas as pd
from pydantic import ValidationError

from sk_budget.budget.invariants import validate_catalog
from sk_budget.budget.models import BudgetCatalog, BudgetItem
from sk_budget.kernel.errors import (
    EmptyCatalog,
    InvalidAmount,
    MalformedCatalog,
    MissingColumns,
    UnsupportedFormat,
)
from sk_budget.kernel.logging import get_logger

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("category", "amount")
OPTIONAL_COLUMNS = (
    "description",
    "committee_responsible",
    "committee_oversight",
    "abyip_ppa_activity",
)

# Currency markers and thousands separators allowed inside amount cells
_AMOUNT_NOISE = r"(?:PHP|₱|,|\s)"

_CODE_FENCE = re.compile(r"```(?:json)?\n?")
_AMOUNT_LINE = re.compile(r"(?:PHP|₱)\s*([\d,.]+)", re.IGNORECASE)
_PROGRAM_HEADER = re.compile(
    r"^(GENERAL ADMINISTRATION|YOUTH DEVELOPMENT|EMPOWERMENT PROGRAM|"
    r"FINANCIAL ASSISTANCE|GRAND TOTAL|TOTAL)",
    re.IGNORECASE,
)
_SUBCATEGORY_HEADER = re.compile(
    r"^(PERSONAL SERVICE|MAINTENANCE AND OTHER OPERATING EXPENSES|CAPITAL OUTLAY|"
    r"EQUITABLE FOR ACCESS EDUCATION|ENVIRONMENT PROTECTION|CLIMATE CHANGE|HEALTH|"
    r"ANTI-DRUG ABUSE PROGRAM|GENDER SENSITIVITY|SPORTS DEVELOPMENT|"
    r"CAPABILITY BUILDING|YOUTH EMPOWERMENT|LINGGO NG KABATAAN|AGRICULTURE)",
    re.IGNORECASE,
)
_NOT_A_DESCRIPTION = re.compile(
    r"^(MONTHS|SCHEDULE|TOTAL|PREPARED BY|APPROVED BY|Republic of the Philippines|"
    r"City of|Barangay|OFFICE OF THE SANGGUNIANG KABATAAN)",
    re.IGNORECASE,
)
_SCHEDULE = re.compile(
    r"(January|February|March|April|May|June|July|August|September|October|"
    r"November|December|\d{4})",
    re.IGNORECASE,
)


def _blank_to_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_csv(text: str, tolerance: float = 0.01) -> BudgetCatalog:
    """
    Parse a CSV budget upload

    Args:
        text: CSV content
        tolerance: Accepted |sum(items) - total| difference

    Returns:
        Validated catalog; totalBudget is the sum of the amounts

    Raises:
        MissingColumns: If `category` or `amount` is missing
        InvalidAmount: If an amount is not a finite, non-negative number
        CatalogIngestionError: Any other validation failure
    """
    try:
        frame = pd.read_csv(
            io.StringIO(text.strip()),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError as e:
        raise MalformedCatalog("CSV file is empty") from e
    except pd.errors.ParserError as e:
        raise MalformedCatalog(f"CSV could not be parsed: {e}") from e

    frame.columns = [str(c).strip() for c in frame.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise MissingColumns(missing)

    amounts = pd.to_numeric(
        frame["amount"].str.replace(_AMOUNT_NOISE, "", regex=True),
        errors="coerce",
    )

    items: list[BudgetItem] = []
    for position, (index, row) in enumerate(frame.iterrows()):
        # +2: one for the header row, one for 1-based numbering
        row_number = position + 2
        amount = amounts.loc[index]
        if pd.isna(amount) or not math.isfinite(amount) or amount < 0:
            raise InvalidAmount(row=row_number, value=row["amount"])

        category = str(row["category"]).strip()
        if not category:
            raise MalformedCatalog(f"row {row_number} has an empty category")

        items.append(
            BudgetItem(
                category=category,
                amount=float(amount),
                **{
                    column: _blank_to_none(row[column])
                    for column in OPTIONAL_COLUMNS
                    if column in frame.columns
                },
            )
        )

    catalog = BudgetCatalog(total_budget=sum(i.amount for i in items), items=items)
    validate_catalog(catalog, tolerance)
    logger.debug("Parsed CSV budget", categories=len(items))
    return catalog


def parse_json(source: str | bytes | dict[str, Any], tolerance: float = 0.01) -> BudgetCatalog:
    """
    Parse a JSON budget upload in the catalog record shape

    Args:
        source: JSON text or an already-decoded dict
        tolerance: Accepted |sum(items) - total| difference

    Raises:
        MalformedCatalog: If the JSON is invalid or not catalog-shaped
        CatalogIngestionError: Any other validation failure
    """
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as e:
            raise MalformedCatalog(f"invalid JSON ({e.msg})") from e
    else:
        data = source

    if not isinstance(data, dict):
        raise MalformedCatalog("expected an object with totalBudget and items")

    try:
        catalog = BudgetCatalog.model_validate(data)
    except ValidationError as e:
        raise MalformedCatalog(_first_error(e)) from e

    validate_catalog(catalog, tolerance)
    return catalog


def from_extracted_records(
    records: list[dict[str, Any]], tolerance: float = 0.01
) -> BudgetCatalog:
    """
    Build a catalog from PDF-extracted records

    Args:
        records: Item-shaped dicts with at least category and amount
        tolerance: Accepted |sum(items) - total| difference

    Returns:
        Validated catalog whose totalBudget is the sum of the amounts
    """
    if not records:
        raise EmptyCatalog()

    items: list[BudgetItem] = []
    for position, record in enumerate(records, start=1):
        try:
            items.append(BudgetItem.model_validate(record))
        except ValidationError as e:
            raise MalformedCatalog(f"record {position}: {_first_error(e)}") from e

    catalog = BudgetCatalog(total_budget=sum(i.amount for i in items), items=items)
    validate_catalog(catalog, tolerance)
    return catalog


def parse_extraction_response(text: str, tolerance: float = 0.01) -> BudgetCatalog:
    """
    Build a catalog from the PDF extraction service's raw answer

    Tries JSON first (fences stripped), accepting `{"budgetItems": [...]}`
    or a bare list of records. Falls back to scanning text lines for
    PHP/₱ amounts grouped under program and sub-category headers.
    """
    cleaned = _CODE_FENCE.sub("", text).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Extraction response is not JSON, scanning text for amounts")
        records = scan_budget_text(text)
    else:
        if isinstance(data, dict):
            records = data.get("budgetItems") or data.get("items") or []
        elif isinstance(data, list):
            records = data
        else:
            raise MalformedCatalog("extraction response has no budget items")

    return from_extracted_records(records, tolerance)


def scan_budget_text(text: str) -> list[dict[str, Any]]:
    """
    Recover budget records from plain text

    A category is "<program> - <sub-category>" from the nearest headers.
    The first descriptive line after an amount becomes its description,
    and a nearby month/year line is appended as the schedule.
    """
    lines = [line.strip() for line in text.splitlines()]
    records: list[dict[str, Any]] = []
    program = ""
    subcategory = ""

    for i, line in enumerate(lines):
        if _PROGRAM_HEADER.match(line):
            program = re.sub(r"^(GRAND TOTAL |TOTAL )", "", line, flags=re.IGNORECASE).strip()
            subcategory = ""
            continue
        if _SUBCATEGORY_HEADER.match(line):
            subcategory = line
            continue

        match = _AMOUNT_LINE.search(line)
        if not match:
            continue

        try:
            amount = float(re.sub(r"[,\s]", "", match.group(1)))
        except ValueError:
            continue
        category = program + (f" - {subcategory}" if subcategory else "")

        description = ""
        for candidate in lines[i + 1 : i + 4]:
            if candidate and not _AMOUNT_LINE.search(candidate) and not _NOT_A_DESCRIPTION.match(candidate):
                description = candidate
                break

        schedule = next(
            (c for c in lines[i + 1 : i + 6] if c and _SCHEDULE.search(c)), ""
        )
        if schedule:
            description = f"{description} ({schedule})".strip()

        records.append(
            {
                "category": category or "Uncategorized",
                "amount": amount,
                "description": description or category,
                "abyip_ppa_activity": f"ABYIP - {description or category}",
            }
        )

    return records


def load_catalog_file(
    path: str | Path, fmt: str | None = None, tolerance: float = 0.01
) -> BudgetCatalog:
    """
    Read and validate a budget upload from disk

    Args:
        path: File to read
        fmt: "csv", "json" or "extracted"; inferred from the suffix if None
        tolerance: Accepted |sum(items) - total| difference

    Raises:
        UnsupportedFormat: For Excel or unknown files
        CatalogIngestionError: Any validation failure
    """
    path = Path(path)
    fmt = (fmt or path.suffix.lstrip(".")).lower()
    if fmt not in ("csv", "json", "extracted"):
        raise UnsupportedFormat(path.name)

    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise MalformedCatalog(f"{path.name} is not UTF-8 text") from e

    if fmt == "csv":
        return parse_csv(text, tolerance)
    if fmt == "json":
        return parse_json(text, tolerance)
    return parse_extraction_response(text, tolerance)


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]
