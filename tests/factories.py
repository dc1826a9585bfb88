# tests/factories.py
from mes_core.app import models
from mes_core.app.security import create_access_token, get_password_hash


def _save(db, obj):
    db.add(obj)
    db.commit()
    return obj


def make_item(db, item_code: str = "P-100", item_name: str = "Bracket A"):
    return _save(db, models.Item(item_code=item_code, item_name=item_name))


def make_stock(db, box_no: str, whs_code: str = "WH01", qty: float = 100,
               item_code: str = "P-100", saupj: str = "10", lot_no: str = None):
    return _save(db, models.StockRecord(
        saupj=saupj, box_no=box_no, whs_code=whs_code, item_code=item_code,
        qty=qty, lot_no=lot_no, reg_user="SEED",
    ))


def make_work_order(db, order_no: str = "WO-001", status: str = "P", work_date: str = "20250101",
                    process_code: str = "OP10", line_code: str = "L1", item_code: str = "P-100",
                    plan_qty: float = 10):
    return _save(db, models.WorkOrder(
        order_no=order_no, process_code=process_code, line_code=line_code,
        item_code=item_code, plan_qty=plan_qty, work_date=work_date, status=status,
        assembly_qty=0,
    ))


def make_user(db, user_id: str = "OP01", password: str = "secret", role: str = "Operator",
              saupj: str = "10", is_active: bool = True):
    return _save(db, models.User(
        user_id=user_id, saupj=saupj, user_name=f"User {user_id}",
        password_hash=get_password_hash(password), role=role,
        op_code="OP10", line_code="L1", is_active=is_active,
    ))


def make_serial(db, serial_no: str, status: str = "SHIPPED", item_code: str = "FG-1",
                cust_code: str = "C01", ship_date: str = "20250101"):
    return _save(db, models.ShippedSerial(
        serial_no=serial_no, item_code=item_code, cust_code=cust_code,
        ship_date=ship_date, status=status,
    ))


def make_slip_line(db, slip_no: str = "SL-001", item_code: str = "P-100", req_qty: float = 50):
    return _save(db, models.SlipDetail(slip_no=slip_no, item_code=item_code, req_qty=req_qty,
                                       issue_qty=0))


def make_kanban(db, kanban_no: str, status: str = None, expire_date: str = None,
                item_code: str = "P-100"):
    return _save(db, models.Kanban(
        kanban_no=kanban_no, item_code=item_code, qty=20, from_location="WH01",
        to_location="L1", status=status, expire_date=expire_date,
    ))


def make_check_item(db, check_no: int, check_name: str, standard: str = "",
                    process_code: str = None):
    return _save(db, models.CheckMaster(
        check_no=check_no, check_name=check_name, standard=standard,
        check_type="PERIODIC", process_code=process_code, use_yn="Y",
    ))


def make_vendor(db, vendor_code: str = "V01", vendor_name: str = "Outside Plating"):
    return _save(db, models.Vendor(vendor_code=vendor_code, vendor_name=vendor_name,
                                   vendor_type="O", use_yn="Y"))


def make_warehouse(db, wh_code: str, wh_name: str, saupj: str = "10", wh_type: str = "MATERIAL"):
    return _save(db, models.Warehouse(wh_code=wh_code, wh_name=wh_name, wh_type=wh_type,
                                      saupj=saupj, use_yn="Y"))


def make_code(db, major_code: str, minor_code: str, code_name: str, use_flag: str = "1"):
    return _save(db, models.CommonCode(major_code=major_code, minor_code=minor_code,
                                       code_name=code_name, use_flag=use_flag))


def make_process(db, op_code: str = "OP10", op_name: str = "SMT", saupj: str = "10",
                 whs_code: str = None):
    return _save(db, models.Process(op_code=op_code, op_name=op_name, saupj=saupj,
                                    whs_code=whs_code, use_yn="Y"))


def auth_headers(user_id: str = "SUP01", role: str = "Supervisor", saupj: str = "10") -> dict:
    token = create_access_token({"sub": user_id, "saupj": saupj, "role": role})
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Ledger reads
# ---------------------------------------------------------------------------

def stock_qty(gateway, box_no: str, whs_code: str):
    """On-hand quantity, None when the row doesn't exist"""
    value = gateway.scalar(
        "SELECT qty FROM pms100 WHERE box_no = :box_no AND whs_code = :whs_code",
        {"box_no": box_no, "whs_code": whs_code},
    )
    return None if value is None else float(value)


def movements(gateway, box_no: str = None, movement_type: str = None) -> list:
    sql = "SELECT * FROM pmb300 WHERE 1 = 1"
    params = {}
    if box_no:
        sql += " AND box_no = :box_no"
        params["box_no"] = box_no
    if movement_type:
        sql += " AND movement_type = :movement_type"
        params["movement_type"] = movement_type
    return gateway.query(sql + " ORDER BY id", params).data
