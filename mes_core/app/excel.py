"""
Count-sheet import for stock-taking. Reads an .xlsx or .csv export of a
physical count (box, item, counted quantity) with pandas and turns it into
stock-take lines.
"""

import logging
from io import BytesIO
from typing import Any, Dict, List

import pandas as pd
from fastapi import HTTPException

logger = logging.getLogger(__name__)


def _to_native(value: Any):
    if value is None:
        return None
    if not isinstance(value, (list, dict)) and pd.isna(value):
        return None
    if hasattr(value, "item"):
        return value.item()
    return value


# Maps common count-sheet header spellings to stock-take fields
DEFAULT_COLUMN_MAPPINGS = {
    # Box / barcode
    "box_no": "box_no", "box no": "box_no", "boxno": "box_no", "box": "box_no",
    "barcode": "box_no", "bar code": "box_no", "label": "box_no", "lot": "box_no",
    "lot no": "box_no", "lot_no": "box_no", "serial": "box_no", "serial no": "box_no",

    # Item
    "item_code": "item_code", "item code": "item_code", "itemcode": "item_code",
    "item": "item_code", "part no": "item_code", "part_no": "item_code", "code": "item_code",

    # Counted quantity
    "actual_qty": "actual_qty", "actual qty": "actual_qty", "actual": "actual_qty",
    "count": "actual_qty", "counted": "actual_qty", "counted qty": "actual_qty",
    "qty": "actual_qty", "quantity": "actual_qty", "physical qty": "actual_qty",
}


def _find_column_mapping(columns: List[str]) -> dict:
    """
    Map sheet columns to stock-take fields. First matching column wins
    when several spell the same field.
    """
    mapping = {}
    for col in columns:
        col_lower = str(col).lower().strip()
        if col_lower in DEFAULT_COLUMN_MAPPINGS:
            field = DEFAULT_COLUMN_MAPPINGS[col_lower]
            if field not in mapping.values():
                mapping[col] = field
    return mapping


def _read_file_to_dataframe(content: bytes, filename: str) -> Dict[str, pd.DataFrame]:
    """
    Read Excel (.xlsx) or CSV file content into pandas DataFrame(s).
    Returns dict of {sheet_name: dataframe} for consistency.
    """
    filename_lower = (filename or "").lower()

    if filename_lower.endswith(".xlsx"):
        try:
            return pd.read_excel(BytesIO(content), sheet_name=None, engine="openpyxl", dtype=object)
        except (ValueError, OSError, KeyError) as exc:
            raise HTTPException(status_code=400, detail=f"Failed to read Excel file: {exc}")

    if filename_lower.endswith(".csv"):
        for encoding in ("utf-8-sig", "cp949", "latin-1"):
            try:
                df = pd.read_csv(BytesIO(content), encoding=encoding, dtype=object)
                return {"Sheet1": df}
            except UnicodeDecodeError:
                continue
            except (ValueError, pd.errors.ParserError) as exc:
                raise HTTPException(status_code=400, detail=f"Failed to read CSV file: {exc}")
        raise HTTPException(status_code=400, detail="Failed to read CSV file: unknown encoding")

    raise HTTPException(status_code=400, detail="Only .xlsx and .csv files are supported")


def parse_count_sheet(content: bytes, filename: str) -> List[dict]:
    """
    Extract {box_no, item_code, actual_qty} rows from every sheet.

    Rows without a box number are ignored; a box counted on several rows is
    summed. Raises 400 when no sheet has both a box and a quantity column or
    a quantity is not a non-negative number.
    """
    sheets = _read_file_to_dataframe(content, filename)
    counted: Dict[str, dict] = {}
    usable_sheet = False

    for sheet_name, df in sheets.items():
        mapping = _find_column_mapping(list(df.columns))
        if "box_no" not in mapping.values() or "actual_qty" not in mapping.values():
            logger.info("Sheet %s skipped: no box/quantity columns in %s", sheet_name, list(df.columns))
            continue
        usable_sheet = True
        df = df.rename(columns=mapping)

        for row_no, record in enumerate(df.to_dict(orient="records"), start=2):
            box_no = _to_native(record.get("box_no"))
            if box_no is None or not str(box_no).strip():
                continue
            box_no = str(box_no).strip()

            raw_qty = _to_native(record.get("actual_qty"))
            try:
                qty = round(float(raw_qty), 3)
            except (TypeError, ValueError):
                raise HTTPException(status_code=400,
                                    detail=f"{sheet_name} row {row_no}: quantity '{raw_qty}' is not a number")
            if qty < 0:
                raise HTTPException(status_code=400,
                                    detail=f"{sheet_name} row {row_no}: quantity cannot be negative")

            item_code = _to_native(record.get("item_code"))
            line = counted.setdefault(box_no, {"box_no": box_no, "item_code": None, "actual_qty": 0.0})
            line["actual_qty"] = round(line["actual_qty"] + qty, 3)
            if item_code is not None and str(item_code).strip():
                line["item_code"] = str(item_code).strip()

    if not usable_sheet:
        raise HTTPException(status_code=400, detail="No sheet has box number and quantity columns")
    return list(counted.values())
