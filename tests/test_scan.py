# tests/test_scan.py
import pytest

from mes_core.app.scan import DuplicateScanError, ScanBatch

from factories import make_stock, stock_qty


def test_duplicate_scan_is_refused():
    batch = ScanBatch()
    batch.add({"box_no": "B1", "qty": 5})
    with pytest.raises(DuplicateScanError):
        batch.add({"box_no": " B1 ", "qty": 1})
    assert len(batch) == 1
    assert "B1" in batch


def test_scan_needs_unit_id_and_positive_qty():
    batch = ScanBatch()
    with pytest.raises(ValueError):
        batch.add({"box_no": "", "qty": 1})
    with pytest.raises(ValueError):
        batch.add({"box_no": "B1", "qty": 0})
    assert len(batch) == 0


def test_serial_batch_without_quantity():
    batch = ScanBatch(key_field="serial_no", qty_field=None)
    batch.add({"serial_no": "SN1"})
    batch.add({"serial_no": "SN2"})
    assert batch.total_qty == 2


def test_remove_and_reset():
    batch = ScanBatch()
    batch.add({"box_no": "B1", "qty": 1.5})
    batch.add({"box_no": "B2", "qty": 2.25})
    assert batch.total_qty == 3.75
    batch.remove("B1")
    assert [line["box_no"] for line in batch.lines] == ["B2"]
    batch.reset()
    assert len(batch) == 0


def test_payload_posts_to_write_endpoint(db, gateway, client):
    make_stock(db, "B1", "WH01", 10)
    make_stock(db, "B2", "WH01", 10)
    batch = ScanBatch()
    batch.add({"box_no": "B1", "item_code": "P-100", "qty": 3})
    batch.add({"box_no": "B2", "item_code": "P-100", "qty": 4})

    body = batch.payload(whs_code="WH01", user_id="PDA01", release_date=None)
    assert body["whsCode"] == "WH01"
    assert "releaseDate" not in body
    assert body["items"][0] == {"boxNo": "B1", "itemCode": "P-100", "qty": 3}

    resp = client.post("/material/release", json=body)
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 2
    assert stock_qty(gateway, "B2", "WH01") == 6
