"""
Scan accumulation on the client side: the PDA collects scanned units into a
batch, then submits the whole batch to one write endpoint.

    batch = ScanBatch()
    batch.add({"box_no": "BOX001", "item_code": "P-100", "qty": 10})
    client.post("/material/release", json=batch.payload(whs_code="WH01"))
"""

from typing import Dict, List, Optional

from pydantic.alias_generators import to_camel


class DuplicateScanError(ValueError):
    """The unit is already in the batch"""


class ScanBatch:
    """Ordered line items keyed by unit id (box or serial number)."""

    def __init__(self, key_field: str = "box_no", qty_field: Optional[str] = "qty"):
        self.key_field = key_field
        self.qty_field = qty_field
        self._lines: Dict[str, dict] = {}

    def __len__(self):
        return len(self._lines)

    def __contains__(self, unit_id: str):
        return unit_id in self._lines

    def add(self, line: dict) -> dict:
        unit_id = str(line.get(self.key_field) or "").strip()
        if not unit_id:
            raise ValueError(f"{self.key_field} is required")
        if unit_id in self._lines:
            raise DuplicateScanError(f"{unit_id} is already scanned")
        if self.qty_field:
            qty = line.get(self.qty_field)
            if qty is None or float(qty) <= 0:
                raise ValueError(f"{self.qty_field} must be greater than 0")
        self._lines[unit_id] = dict(line, **{self.key_field: unit_id})
        return self._lines[unit_id]

    def remove(self, unit_id: str) -> dict:
        return self._lines.pop(unit_id)

    def reset(self):
        self._lines.clear()

    @property
    def lines(self) -> List[dict]:
        return list(self._lines.values())

    @property
    def total_qty(self) -> float:
        if not self.qty_field:
            return float(len(self._lines))
        return round(sum(float(line[self.qty_field]) for line in self._lines.values()), 3)

    def payload(self, items_field: str = "items", **header) -> dict:
        """Request body with camelCase keys: header fields plus the items array."""
        body = {to_camel(k): v for k, v in header.items() if v is not None}
        body[to_camel(items_field)] = [
            {to_camel(k): v for k, v in line.items()} for line in self._lines.values()
        ]
        return body
