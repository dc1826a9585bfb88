# tests/test_material.py
from factories import make_item, make_slip_line, make_stock, make_vendor, movements, stock_qty


def test_issue_without_slip_moves_box_between_warehouses(db, gateway, client):
    make_stock(db, "B1", "WH01", 100)
    resp = client.post("/material/issue-no-slip", json={
        "fromWhsCode": "WH01", "toWhsCode": "WH02", "issueDate": "2025-03-04",
        "userId": "KIM",
        "items": [{"boxNo": "B1", "itemCode": "P-100", "qty": 100}],
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["count"] == 1
    assert body["data"]["skipped"] == []

    assert stock_qty(gateway, "B1", "WH01") == 0
    assert stock_qty(gateway, "B1", "WH02") == 100
    [move] = movements(gateway, "B1")
    assert move["movement_type"] == "TRANSFER"
    assert (move["from_whs"], move["to_whs"]) == ("WH01", "WH02")
    assert move["move_date"] == "20250304"
    assert move["reg_user"] == "KIM"


def test_issue_without_slip_reports_short_boxes(db, gateway, client):
    make_stock(db, "B1", "WH01", 10)
    make_stock(db, "B2", "WH01", 2)
    make_stock(db, "B3", "WH01", 10)
    resp = client.post("/material/issue-no-slip", json={
        "fromWhsCode": "WH01", "toWhsCode": "WH02",
        "items": [
            {"boxNo": "B1", "qty": 5},
            {"boxNo": "B2", "qty": 5},
            {"boxNo": "B3", "qty": 5},
        ],
    })
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["count"] == 2
    assert data["skipped"][0]["boxNo"] == "B2"
    assert data["skipped"][0]["reason"] == "INSUFFICIENT_STOCK"
    assert stock_qty(gateway, "B2", "WH01") == 2
    assert stock_qty(gateway, "B2", "WH02") is None


def test_issue_without_slip_all_failed_is_400(client):
    resp = client.post("/material/issue-no-slip", json={
        "fromWhsCode": "WH01", "toWhsCode": "WH02",
        "items": [{"boxNo": "GHOST", "qty": 1}],
    })
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"].startswith("No items were issued")


def test_issue_without_slip_header_validation(client):
    resp = client.post("/material/issue-no-slip", json={
        "fromWhsCode": "WH01", "toWhsCode": "WH01", "items": [{"boxNo": "B1", "qty": 1}],
    })
    assert resp.status_code == 400
    assert resp.json()["error"] == "fromWhsCode and toWhsCode must differ"

    resp = client.post("/material/issue-no-slip", json={"fromWhsCode": "WH01", "toWhsCode": "WH02"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "no items to issue"


def test_non_positive_quantity_is_rejected_before_any_write(db, gateway, client):
    make_stock(db, "B1", "WH01", 10)
    resp = client.post("/material/release", json={
        "whsCode": "WH01", "items": [{"boxNo": "B1", "qty": 0}],
    })
    assert resp.status_code == 400
    assert "qty" in resp.json()["error"]
    assert stock_qty(gateway, "B1", "WH01") == 10

    # rounds to 0 at ledger precision
    resp = client.post("/material/release", json={
        "whsCode": "WH01", "items": [{"boxNo": "B1", "qty": 0.0001}],
    })
    assert resp.status_code == 400
    assert "qty must be greater than 0" in resp.json()["error"]
    assert stock_qty(gateway, "B1", "WH01") == 10
    assert movements(gateway) == []

    resp = client.post("/material/issue-slip", json={
        "slipNo": "SL-001", "warehouseCode": "WH01",
        "items": [{"boxNo": "B1", "itemCode": "P-100", "issueQty": 0.0004}],
    })
    assert resp.status_code == 400
    assert "issueQty must be greater than 0" in resp.json()["error"]


def test_issue_against_slip_updates_slip_line(db, gateway, client):
    make_stock(db, "B1", "WH01", 40)
    make_slip_line(db, "SL-001", "P-100", 50)
    resp = client.post("/material/issue-slip", json={
        "slipNo": "SL-001", "warehouseCode": "WH01",
        "items": [{"boxNo": "B1", "itemCode": "P-100", "issueQty": 30}],
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 1
    assert stock_qty(gateway, "B1", "WH01") == 10

    line = gateway.query("SELECT issue_qty, lot_no, wh_code FROM tb_slip_detail").data[0]
    assert float(line["issue_qty"]) == 30
    assert line["lot_no"] == "B1"
    assert line["wh_code"] == "WH01"
    [move] = movements(gateway, "B1")
    assert move["movement_type"] == "ISSUE"
    assert move["ref_no"] == "SL-001"


def test_issue_against_slip_is_all_or_nothing(db, gateway, client):
    make_stock(db, "B1", "WH01", 40)
    make_stock(db, "B2", "WH01", 40, item_code="P-200")
    make_slip_line(db, "SL-001", "P-100", 50)
    resp = client.post("/material/issue-slip", json={
        "slipNo": "SL-001", "warehouseCode": "WH01",
        "items": [
            {"boxNo": "B1", "itemCode": "P-100", "issueQty": 10},
            {"boxNo": "B2", "itemCode": "P-200", "issueQty": 10},
        ],
    })
    assert resp.status_code == 400
    assert "B2" in resp.json()["error"]
    assert stock_qty(gateway, "B1", "WH01") == 40
    assert movements(gateway) == []


def test_slip_lines_lookup(db, client):
    make_item(db, "P-100", "Bracket A")
    make_slip_line(db, "SL-001", "P-100", 50)
    resp = client.get("/material/issue-slip", params={"slipNo": "SL-001"})
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 1

    resp = client.get("/material/issue-slip", params={"slipNo": "SL-404"})
    assert resp.status_code == 404


def test_receive_then_cancel_round_trip(db, gateway, client):
    resp = client.post("/material/receive", json={
        "whsCode": "WH01", "vendorCode": "V01", "receiveDate": "20250305",
        "items": [{"boxNo": "R1", "itemCode": "P-100", "qty": 25, "lotNo": "LOT-9"}],
    })
    assert resp.status_code == 200
    assert stock_qty(gateway, "R1", "WH01") == 25
    [receipt] = movements(gateway, "R1")
    assert receipt["ref_no"] == "V01"

    history = client.get("/material/receive", params={
        "whsCode": "WH01", "fromDate": "20250301", "toDate": "20250331"}).json()["data"]
    assert len(history) == 1

    resp = client.post("/material/receive-cancel", json={
        "whsCode": "WH01",
        "items": [{"boxNo": "R1", "qty": 25, "receiveDate": "2025-03-05"}],
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 1
    assert stock_qty(gateway, "R1", "WH01") == 0
    assert movements(gateway, "R1")[0]["cancel_yn"] == "Y"

    # second cancel finds no open receipt
    resp = client.post("/material/receive-cancel", json={
        "whsCode": "WH01", "items": [{"boxNo": "R1", "qty": 25}],
    })
    assert resp.status_code == 400


def test_receive_cancel_quantity_must_match_receipt(db, gateway, client):
    client.post("/material/receive", json={
        "whsCode": "WH01", "items": [{"boxNo": "R1", "itemCode": "P-100", "qty": 100}],
    })
    resp = client.post("/material/receive-cancel", json={
        "whsCode": "WH01", "items": [{"boxNo": "R1", "qty": 1}],
    })
    assert resp.status_code == 400
    assert "does not match" in resp.json()["error"]
    assert stock_qty(gateway, "R1", "WH01") == 100
    assert [m["cancel_yn"] for m in movements(gateway, "R1")] == [None]

    resp = client.post("/material/receive-cancel", json={
        "whsCode": "WH01", "items": [{"boxNo": "R1", "qty": 100}],
    })
    assert resp.status_code == 200
    assert stock_qty(gateway, "R1", "WH01") == 0
    assert [m["cancel_yn"] for m in movements(gateway, "R1")] == ["Y"]


def test_receive_cancel_needs_stock_still_on_hand(db, gateway, client):
    client.post("/material/receive", json={
        "whsCode": "WH01", "items": [{"boxNo": "R1", "itemCode": "P-100", "qty": 25}],
    })
    client.post("/material/release", json={
        "whsCode": "WH01", "items": [{"boxNo": "R1", "qty": 20}],
    })
    resp = client.post("/material/receive-cancel", json={
        "whsCode": "WH01", "items": [{"boxNo": "R1", "qty": 25}],
    })
    assert resp.status_code == 400
    assert stock_qty(gateway, "R1", "WH01") == 5
    assert movements(gateway, "R1", "RECEIVE")[0]["cancel_yn"] is None


def test_release_writes_release_movement(db, gateway, client):
    make_stock(db, "B1", "WH01", 10)
    resp = client.post("/material/release", json={
        "whsCode": "WH01", "items": [{"boxNo": "B1", "itemCode": "P-100", "qty": 4}],
    })
    assert resp.status_code == 200
    assert stock_qty(gateway, "B1", "WH01") == 6
    assert movements(gateway, "B1")[0]["movement_type"] == "RELEASE"


def test_outsource_from_resolved_location(db, gateway, client):
    make_vendor(db)
    make_stock(db, "B1", "WH03", 12)
    resp = client.post("/material/outsource", json={
        "vendorCode": "V01", "items": [{"boxNo": "B1", "qty": 12}],
    })
    assert resp.status_code == 200
    assert stock_qty(gateway, "B1", "WH03") == 0
    [move] = movements(gateway, "B1")
    assert move["movement_type"] == "OUTSOURCE_OUT"
    assert move["ref_no"] == "V01"

    vendors = client.get("/material/outsource", params={"keyword": "Plating"}).json()["data"]
    assert vendors[0]["vendorCode"] == "V01"


def test_outsource_requires_vendor(client):
    resp = client.post("/material/outsource", json={"items": [{"boxNo": "B1", "qty": 1}]})
    assert resp.status_code == 400
    assert resp.json()["error"] == "vendorCode is required"


def test_stocktake_overwrites_quantity_and_records_difference(db, gateway, client):
    make_stock(db, "B1", "WH01", 50)
    lookup = client.get("/material/stocktaking", params={"boxNo": "B1", "whsCode": "WH01"})
    assert lookup.json()["data"]["systemQty"] == 50
    assert lookup.json()["data"]["isNew"] is False

    resp = client.post("/material/stocktaking", json={
        "whsCode": "WH01", "items": [{"boxNo": "B1", "systemQty": 50, "actualQty": 45}],
    })
    assert resp.status_code == 200
    assert stock_qty(gateway, "B1", "WH01") == 45
    [move] = movements(gateway, "B1")
    assert move["movement_type"] == "STOCKTAKE"
    assert float(move["qty"]) == -5
    assert float(move["system_qty"]) == 50
    assert float(move["actual_qty"]) == 45


def test_stocktake_of_unknown_box_creates_it(gateway, client):
    lookup = client.get("/material/stocktaking", params={"boxNo": "NEW1", "whsCode": "WH01"})
    assert lookup.json()["data"]["isNew"] is True

    resp = client.post("/material/stocktaking", json={
        "whsCode": "WH01", "items": [{"boxNo": "NEW1", "itemCode": "P-100", "actualQty": 7}],
    })
    assert resp.status_code == 200
    assert stock_qty(gateway, "NEW1", "WH01") == 7
    assert float(movements(gateway, "NEW1")[0]["qty"]) == 7


def test_stocktake_upload_from_count_sheet(db, gateway, client):
    make_stock(db, "B1", "WH01", 50)
    make_stock(db, "B2", "WH01", 10)
    sheet = "Box No,Item Code,Counted\nB1,P-100,45\nB2,P-100,4\nB2,P-100,6\nB3,P-300,2\n"
    resp = client.post(
        "/material/stocktaking/upload",
        data={"whsCode": "WH01", "userId": "LEE"},
        files={"file": ("count.csv", sheet.encode("utf-8"), "text/csv")},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 3
    assert stock_qty(gateway, "B1", "WH01") == 45
    assert stock_qty(gateway, "B2", "WH01") == 10
    assert stock_qty(gateway, "B3", "WH01") == 2
    assert float(movements(gateway, "B2")[0]["qty"]) == 0


def test_stocktake_upload_rejects_unusable_sheet(client):
    resp = client.post(
        "/material/stocktaking/upload",
        data={"whsCode": "WH01"},
        files={"file": ("count.csv", b"Name,Colour\nA,red\n", "text/csv")},
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_barcode_lookup(db, client):
    make_item(db, "P-100", "Bracket A")
    make_stock(db, "B1", "WH01", 3)
    make_stock(db, "B1", "WH02", 9)
    data = client.get("/material/barcode", params={"boxNo": "B1"}).json()["data"]
    assert data["whsCode"] == "WH02"
    assert data["itemName"] == "Bracket A"

    assert client.get("/material/barcode", params={"boxNo": "NOPE"}).status_code == 404
    assert client.get("/material/barcode").status_code == 400


def test_outsourcing_screen_is_all_or_nothing(db, gateway, client):
    make_vendor(db)
    make_stock(db, "FG1", "FG01", 10)
    make_stock(db, "FG2", "FG01", 1)
    assert client.get("/outsourcing/box", params={"boxNo": "FG1"}).json()["data"]["whsCode"] == "FG01"

    resp = client.post("/outsourcing", json={
        "vendorCode": "V01", "whsCode": "FG01",
        "items": [{"boxNo": "FG1", "qty": 5}, {"boxNo": "FG2", "qty": 5}],
    })
    assert resp.status_code == 400
    assert stock_qty(gateway, "FG1", "FG01") == 10

    resp = client.post("/outsourcing", json={
        "vendorCode": "V01", "whsCode": "FG01", "items": [{"boxNo": "FG1", "qty": 5}],
    })
    assert resp.status_code == 200
    assert resp.json()["message"] == "1 item(s) shipped out"
    assert stock_qty(gateway, "FG1", "FG01") == 5
