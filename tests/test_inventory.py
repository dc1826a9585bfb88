# tests/test_inventory.py
from factories import auth_headers, make_item, make_stock, movements, stock_qty


# ---------------------------------------------------------------------------
# Move
# ---------------------------------------------------------------------------

def test_move_with_per_line_warehouses(db, gateway, client):
    make_stock(db, "B1", "WH01", 10)
    make_stock(db, "B2", "WH03", 8)
    resp = client.post("/inventory/move", json={
        "moveDate": "2025-03-08", "fromWhsCode": "WH01", "toWhsCode": "WH02",
        "items": [
            {"boxNo": "B1", "qty": 10},
            {"boxNo": "B2", "qty": 8, "whsCode": "WH03", "toWhsCode": "WH04"},
        ],
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 2
    assert (stock_qty(gateway, "B1", "WH01"), stock_qty(gateway, "B1", "WH02")) == (0, 10)
    assert (stock_qty(gateway, "B2", "WH03"), stock_qty(gateway, "B2", "WH04")) == (0, 8)

    [move] = movements(gateway, "B2")
    assert (move["movement_type"], move["from_whs"], move["to_whs"]) == ("TRANSFER", "WH03", "WH04")
    assert move["move_date"] == "20250308"


def test_move_line_onto_its_own_warehouse_is_skipped(db, gateway, client):
    make_stock(db, "B1", "WH01", 10)
    make_stock(db, "B2", "WH01", 10)
    resp = client.post("/inventory/move", json={
        "fromWhsCode": "WH01", "toWhsCode": "WH02",
        "items": [{"boxNo": "B1", "qty": 1, "toWhsCode": "WH01"}, {"boxNo": "B2", "qty": 1}],
    })
    data = resp.json()["data"]
    assert data["count"] == 1
    assert data["skipped"][0]["reason"] == "INVALID_ITEM"
    assert stock_qty(gateway, "B1", "WH01") == 10


def test_move_header_validation(client):
    resp = client.post("/inventory/move", json={
        "fromWhsCode": "WH01", "toWhsCode": "WH01", "items": [{"boxNo": "B1", "qty": 1}],
    })
    assert resp.status_code == 400
    assert resp.json()["error"] == "fromWhsCode and toWhsCode must differ"


# ---------------------------------------------------------------------------
# Repack
# ---------------------------------------------------------------------------

def test_repack_splits_source_into_new_boxes(db, gateway, client):
    make_stock(db, "SRC", "FG01", 100, item_code="FG-1")
    assert client.get("/repack", params={"boxNo": "SRC"}).json()["data"]["qty"] == 100

    resp = client.post("/repack", json={
        "sourceBoxNo": "SRC", "repackDate": "20250309",
        "items": [{"newBoxNo": "N1", "qty": 40}, {"newBoxNo": "N2", "qty": 60}],
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["count"] == 2
    assert stock_qty(gateway, "SRC", "FG01") == 0
    assert stock_qty(gateway, "N1", "FG01") == 40
    assert stock_qty(gateway, "N2", "FG01") == 60
    assert gateway.scalar("SELECT item_code FROM pms100 WHERE box_no = 'N2'") == "FG-1"

    out = movements(gateway, "SRC")
    assert [(m["movement_type"], m["ref_no"]) for m in out] == [("REPACK_OUT", "N1"), ("REPACK_OUT", "N2")]
    assert movements(gateway, "N1")[0]["movement_type"] == "REPACK_IN"

    history = gateway.query("SELECT source_no, new_no, qty, repack_type, repack_date "
                            "FROM pmb600 ORDER BY id").data
    assert [(h["new_no"], float(h["qty"])) for h in history] == [("N1", 40), ("N2", 60)]
    assert {h["repack_type"] for h in history} == {"BOX"}
    assert history[0]["repack_date"] == "20250309"


def test_repack_beyond_source_quantity_is_refused(db, gateway, client):
    make_stock(db, "SRC", "FG01", 50)
    resp = client.post("/repack", json={
        "sourceBoxNo": "SRC",
        "items": [{"newBoxNo": "N1", "qty": 30}, {"newBoxNo": "N2", "qty": 30}],
    })
    assert resp.status_code == 400
    assert stock_qty(gateway, "SRC", "FG01") == 50
    assert movements(gateway) == []


def test_repack_into_explicit_warehouse_rolls_back_whole(db, gateway, client):
    make_stock(db, "SRC", "FG01", 50)
    resp = client.post("/repack", json={
        "sourceBoxNo": "SRC", "whsCode": "FG01",
        "items": [{"newBoxNo": "N1", "qty": 30}, {"newBoxNo": "N2", "qty": 30}],
    })
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("N2:")
    assert stock_qty(gateway, "SRC", "FG01") == 50
    assert stock_qty(gateway, "N1", "FG01") is None
    assert gateway.scalar("SELECT COUNT(*) FROM pmb600") == 0


def test_repack_refuses_box_that_already_holds_stock(db, gateway, client):
    make_stock(db, "SRC", "FG01", 50)
    make_stock(db, "N1", "FG02", 1)
    resp = client.post("/repack", json={"sourceBoxNo": "SRC", "items": [{"newBoxNo": "N1", "qty": 5}]})
    assert resp.status_code == 400
    assert stock_qty(gateway, "SRC", "FG01") == 50

    resp = client.post("/repack", json={"sourceBoxNo": "SRC", "items": [{"newBoxNo": "SRC", "qty": 5}]})
    assert resp.status_code == 400
    assert resp.json()["error"] == "a new box cannot reuse the source box number"


def test_serial_repack_relabels_one_piece_units(db, gateway, client):
    make_stock(db, "SN-OLD", "FG01", 1, item_code="FG-1")
    make_stock(db, "SN-GONE", "FG01", 0, item_code="FG-1")
    resp = client.post("/repack/individual", json={"items": [
        {"oldSerialNo": "SN-OLD", "newSerialNo": "SN-NEW"},
        {"oldSerialNo": "SN-GONE", "newSerialNo": "SN-NEW2"},
    ]})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["count"] == 1
    assert data["skipped"][0]["serialNo"] == "SN-GONE"
    assert stock_qty(gateway, "SN-OLD", "FG01") == 0
    assert stock_qty(gateway, "SN-NEW", "FG01") == 1
    assert gateway.scalar("SELECT repack_type FROM pmb600") == "SERIAL"


# ---------------------------------------------------------------------------
# CKD part number change
# ---------------------------------------------------------------------------

def test_ckd_change_renames_item_and_keeps_quantity(db, gateway, client):
    make_item(db, "CKD-2", "Knock-down kit B")
    make_stock(db, "CB1", "WH01", 12, item_code="CKD-1")
    resp = client.post("/repack/ckd-change", json={"items": [
        {"boxNo": "CB1", "oldItemCode": "CKD-1", "newItemCode": "CKD-2"},
    ]})
    assert resp.status_code == 200
    row = gateway.query("SELECT item_code, qty FROM pms100 WHERE box_no = 'CB1'").data[0]
    assert (row["item_code"], float(row["qty"])) == ("CKD-2", 12)

    [move] = movements(gateway, "CB1")
    assert move["movement_type"] == "ITEM_CHANGE"
    assert (move["ref_no"], move["item_code"]) == ("CKD-1", "CKD-2")
    change = gateway.query("SELECT old_item_code, new_item_code FROM pmb610").data[0]
    assert change == {"old_item_code": "CKD-1", "new_item_code": "CKD-2"}


def test_ckd_change_checks_old_and_new_item(db, gateway, client):
    make_item(db, "CKD-2", "Knock-down kit B")
    make_stock(db, "CB1", "WH01", 12, item_code="CKD-1")

    resp = client.post("/repack/ckd-change", json={"items": [
        {"boxNo": "CB1", "oldItemCode": "CKD-9", "newItemCode": "CKD-2"},
    ]})
    assert resp.status_code == 400
    assert "carries CKD-1" in resp.json()["error"]

    resp = client.post("/repack/ckd-change", json={"items": [
        {"boxNo": "CB1", "newItemCode": "NOPE"},
    ]})
    assert resp.status_code == 400
    assert gateway.scalar("SELECT item_code FROM pms100 WHERE box_no = 'CB1'") == "CKD-1"


def test_viewer_cannot_repack(db, client):
    make_stock(db, "SRC", "FG01", 50)
    resp = client.post("/repack", json={"sourceBoxNo": "SRC", "items": [{"newBoxNo": "N1", "qty": 5}]},
                       headers=auth_headers("VIEW01", role="Viewer"))
    assert resp.status_code == 403
