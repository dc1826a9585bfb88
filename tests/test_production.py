# tests/test_production.py
from factories import make_process, make_stock, make_work_order, movements, stock_qty


def _input(client, **overrides):
    body = {
        "workOrder": "WO-001", "processCode": "OP10", "lineCode": "L1", "whsCode": "LS01",
        "items": [{"boxNo": "PB1", "partCode": "P-100", "qty": 20}],
    }
    body.update(overrides)
    return client.post("/production/parts-input", json=body)


def test_parts_input_consumes_line_side_stock(db, gateway, client):
    make_stock(db, "PB1", "LS01", 50)
    resp = _input(client)
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 1
    assert stock_qty(gateway, "PB1", "LS01") == 30

    [move] = movements(gateway, "PB1")
    assert move["movement_type"] == "PRODUCTION_INPUT"
    assert move["ref_no"] == "WO-001"
    assert (move["process_code"], move["line_code"]) == ("OP10", "L1")


def test_parts_input_requires_work_order(client):
    resp = _input(client, workOrder="")
    assert resp.status_code == 400
    assert resp.json()["error"] == "workOrder is required"


def test_input_history_and_cancel_restore_stock(db, gateway, client):
    make_stock(db, "PB1", "LS01", 50)
    _input(client)

    history = client.get("/production/input-cancel",
                         params={"processCode": "OP10", "lineCode": "L1"}).json()["data"]
    assert len(history) == 1
    assert history[0]["boxNo"] == "PB1"
    assert history[0]["whsCode"] == "LS01"

    resp = client.post("/production/input-cancel", json={
        "processCode": "OP10", "lineCode": "L1",
        "items": [{"boxNo": "PB1", "movementId": history[0]["movementId"]}],
    })
    assert resp.status_code == 200
    assert stock_qty(gateway, "PB1", "LS01") == 50
    assert movements(gateway, "PB1")[0]["cancel_yn"] == "Y"

    # cancelled inputs drop out of the history and can't be cancelled again
    assert client.get("/production/input-cancel",
                      params={"processCode": "OP10", "lineCode": "L1"}).json()["data"] == []
    resp = client.post("/production/input-cancel", json={
        "processCode": "OP10", "lineCode": "L1", "items": [{"boxNo": "PB1"}],
    })
    assert resp.status_code == 400
    assert stock_qty(gateway, "PB1", "LS01") == 50


def test_input_cancel_on_other_line_finds_nothing(db, gateway, client):
    make_stock(db, "PB1", "LS01", 50)
    _input(client)
    resp = client.post("/production/input-cancel", json={
        "processCode": "OP10", "lineCode": "L2", "items": [{"boxNo": "PB1"}],
    })
    assert resp.status_code == 400
    assert stock_qty(gateway, "PB1", "LS01") == 30


def test_two_inputs_of_one_box_cancel_together(db, gateway, client):
    make_stock(db, "PB1", "LS01", 50)
    _input(client)
    _input(client)
    ids = [m["id"] for m in movements(gateway, "PB1")]

    resp = client.post("/production/input-cancel", json={
        "processCode": "OP10", "lineCode": "L1",
        "items": [{"boxNo": "PB1", "movementId": ids[1]}, {"boxNo": "PB1", "movementId": ids[0]}],
    })
    assert resp.json()["data"]["count"] == 2
    assert stock_qty(gateway, "PB1", "LS01") == 50


def test_smd_check_counts_results(gateway, client):
    resp = client.post("/production/smd-check", json={
        "processCode": "SMD", "lineCode": "L1", "workDate": "20250310",
        "items": [
            {"boxNo": "S1", "result": "ok", "checkTime": "09:12"},
            {"boxNo": "S2", "result": "NG"},
            {"boxNo": "S3", "result": "OK"},
        ],
    })
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert (data["count"], data["ok"], data["ng"]) == (3, 2, 1)
    rows = gateway.query("SELECT unit_no, result, check_type FROM pmb400 ORDER BY id").data
    assert [r["result"] for r in rows] == ["OK", "NG", "OK"]
    assert {r["check_type"] for r in rows} == {"SMD"}


def test_smd_check_rejects_unknown_result(client):
    resp = client.post("/production/smd-check", json={
        "processCode": "SMD", "lineCode": "L1", "items": [{"boxNo": "S1", "result": "MAYBE"}],
    })
    assert resp.status_code == 400
    assert "OK or NG" in resp.json()["error"]


def test_assembly_result_rolls_up_ok_count(db, gateway, client):
    make_work_order(db, "WO-001", status="W")
    resp = client.post("/production/assembly", json={
        "orderNo": "WO-001", "processCode": "OP10", "lineCode": "L1",
        "items": [
            {"serialNo": "SN1", "status": "OK"},
            {"serialNo": "SN2", "status": "NG"},
            {"serialNo": "SN1", "status": "OK"},
        ],
    })
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert (data["count"], data["ok"], data["ng"]) == (2, 1, 1)
    assert data["skipped"][0]["serialNo"] == "SN1"
    assert data["skipped"][0]["reason"] == "DUPLICATE_SCAN"
    qty = gateway.scalar("SELECT assembly_qty FROM pmo100 WHERE order_no = 'WO-001'")
    assert float(qty) == 1


def test_assembly_result_for_unknown_order_is_404(client):
    resp = client.post("/production/assembly", json={
        "orderNo": "WO-404", "processCode": "OP10", "lineCode": "L1",
        "items": [{"serialNo": "SN1", "status": "OK"}],
    })
    assert resp.status_code == 404


def test_assembly_orders_exclude_completed(db, client):
    make_work_order(db, "WO-001", status="W", work_date="20250310")
    make_work_order(db, "WO-002", status="C", work_date="20250310")
    resp = client.get("/production/assembly",
                      params={"processCode": "OP10", "lineCode": "L1", "workDate": "2025-03-10"})
    assert resp.status_code == 200
    assert [o["orderNo"] for o in resp.json()["data"]] == ["WO-001"]


# ---------------------------------------------------------------------------
# Results and disposal
# ---------------------------------------------------------------------------

def _result(client, **overrides):
    body = {
        "processCode": "OP10", "lineCode": "L1", "workOrder": "WO-001", "planDate": "2025-03-07",
        "items": [{"boxNo": "FB1", "itemCode": "FG-1", "qty": 24}],
    }
    body.update(overrides)
    return client.post("/production/result", json=body)


def test_result_books_box_into_process_warehouse(db, gateway, client):
    make_process(db, "OP10", whs_code="FG01")
    resp = _result(client)
    assert resp.status_code == 200
    assert stock_qty(gateway, "FB1", "FG01") == 24

    [move] = movements(gateway, "FB1")
    assert move["movement_type"] == "PRODUCTION_RESULT"
    assert (move["to_whs"], move["ref_no"], move["move_date"]) == ("FG01", "WO-001", "20250307")
    assert (move["process_code"], move["line_code"]) == ("OP10", "L1")


def test_result_merges_into_existing_box_and_honours_request_warehouse(db, gateway, client):
    make_stock(db, "FB1", "FG02", 6, item_code="FG-1")
    resp = _result(client, whsCode="FG02")
    assert resp.status_code == 200
    assert stock_qty(gateway, "FB1", "FG02") == 30


def test_result_without_any_warehouse_is_refused(db, gateway, client):
    make_process(db, "OP10")
    resp = _result(client)
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("whsCode is required")
    assert movements(gateway) == []


def test_disposal_debits_boxes_and_reports_total(db, gateway, client):
    make_stock(db, "DB1", "WH01", 10)
    make_stock(db, "DB2", "WH01", 2)
    make_stock(db, "DB3", "WH01", 5)
    resp = client.post("/production/disposal", json={
        "whsCode": "WH01", "reason": "SCRAP", "remark": "water damage",
        "items": [{"boxNo": "DB1", "qty": 10}, {"boxNo": "DB2", "qty": 5}, {"boxNo": "DB3", "qty": 1.5}],
    })
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["count"] == 2
    assert data["totalQty"] == 11.5
    assert data["skipped"][0]["boxNo"] == "DB2"
    assert stock_qty(gateway, "DB1", "WH01") == 0
    assert stock_qty(gateway, "DB2", "WH01") == 2

    [move] = movements(gateway, "DB1")
    assert move["movement_type"] == "DISPOSAL"
    assert (move["ref_no"], move["remark"]) == ("SCRAP", "water damage")


def test_disposal_needs_reason(client):
    resp = client.post("/production/disposal", json={
        "whsCode": "WH01", "items": [{"boxNo": "DB1", "qty": 1}],
    })
    assert resp.status_code == 400
    assert resp.json()["error"] == "reason is required"
