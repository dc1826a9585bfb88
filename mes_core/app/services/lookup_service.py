"""
Validation & Lookup Queries
===========================
Read-only endpoints: one parameterized query each, projected to the
camelCase shape the PDA screens bind to.
"""

import logging
from datetime import date
from typing import List, Optional

from ..gateway import QueryGateway
from ..models import MovementType, SerialStatus
from ..utils import clock, compact_date, dashed, parse_ymd, to_float
from .ledger_service import LedgerError, NotFoundError, ValidationFailed, require
from .work_order_service import STATUS_NAMES

logger = logging.getLogger(__name__)


# Used when qms_check_master has no periodic items for the process
DEFAULT_CHECK_ITEMS = [
    {"no": 1, "checkName": "Temperature", "standard": "23±2℃"},
    {"no": 2, "checkName": "Humidity", "standard": "50±10%"},
    {"no": 3, "checkName": "Air pressure", "standard": "1.0±0.1 MPa"},
    {"no": 4, "checkName": "Cleanliness", "standard": "Class 10000 or better"},
    {"no": 5, "checkName": "Equipment condition", "standard": "No abnormality"},
]


def _rows(gateway: QueryGateway, sql: str, params: dict, what: str) -> List[dict]:
    result = gateway.query(sql, params)
    if not result.success:
        raise LedgerError(f"could not read {what}", 500)
    return result.data


def _ymd(value: Optional[str], name: str, default_today: bool = True) -> str:
    try:
        return compact_date(value, default_today=default_today)
    except ValueError:
        raise ValidationFailed(f"{name} is not a valid date")


class LookupService:

    # -------------------------------------------------------------------------
    # Master data
    # -------------------------------------------------------------------------

    @staticmethod
    def combo(gateway: QueryGateway, major_code: str) -> list:
        require(major_code, "majorCode is required")
        rows = _rows(gateway, """
            SELECT minor_code, code_name
              FROM bma100
             WHERE major_code = :major_code
               AND use_flag = '1'
             ORDER BY minor_code
        """, {"major_code": major_code}, "common codes")
        return [{"code": r["minor_code"], "name": r["code_name"]} for r in rows]

    @staticmethod
    def warehouses(gateway: QueryGateway, saupj: str) -> list:
        rows = _rows(gateway, """
            SELECT wh_code, wh_name, wh_type
              FROM tb_warehouse
             WHERE saupj = :saupj
               AND use_yn = 'Y'
             ORDER BY wh_code
        """, {"saupj": saupj}, "warehouses")
        return [{"code": r["wh_code"], "name": r["wh_name"], "type": r["wh_type"] or ""} for r in rows]

    @staticmethod
    def lines(gateway: QueryGateway, saupj: str, op_code: Optional[str] = None) -> list:
        sql = """
            SELECT line_code, line_name, op_code
              FROM tb_line
             WHERE saupj = :saupj
               AND use_yn = 'Y'
        """
        params = {"saupj": saupj}
        if op_code:
            sql += " AND op_code = :op_code"
            params["op_code"] = op_code
        rows = _rows(gateway, sql + " ORDER BY line_code", params, "lines")
        return [{"code": r["line_code"], "name": r["line_name"], "opCode": r["op_code"] or ""}
                for r in rows]

    @staticmethod
    def processes(gateway: QueryGateway, saupj: str) -> list:
        rows = _rows(gateway, """
            SELECT op_code, op_name, op_type
              FROM tb_process
             WHERE saupj = :saupj
               AND use_yn = 'Y'
             ORDER BY op_code
        """, {"saupj": saupj}, "processes")
        return [{"code": r["op_code"], "name": r["op_name"], "type": r["op_type"] or ""} for r in rows]

    @staticmethod
    def outsourcing_vendors(gateway: QueryGateway, keyword: str = "") -> list:
        like = f"%{keyword.strip()}%"
        rows = _rows(gateway, """
            SELECT vendor_code, vendor_name, tel_no, addr
              FROM vendor_master
             WHERE vendor_type = 'O'
               AND use_yn = 'Y'
               AND (vendor_code LIKE :kw OR vendor_name LIKE :kw)
             ORDER BY vendor_name
        """, {"kw": like}, "vendors")
        return [{"vendorCode": r["vendor_code"], "vendorName": r["vendor_name"],
                 "telNo": r["tel_no"] or "", "address": r["addr"] or ""} for r in rows]

    # -------------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------------

    @staticmethod
    def barcode(gateway: QueryGateway, box_no: str, whs_code: Optional[str] = None) -> dict:
        """Stock held under a scanned box, largest location first."""
        require(box_no, "boxNo is required")
        sql = """
            SELECT A.box_no, A.item_code, B.item_name, A.qty, A.whs_code, A.lot_no
              FROM pms100 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
             WHERE A.box_no = :box_no
               AND A.qty > 0
        """
        params = {"box_no": box_no}
        if whs_code:
            sql += " AND A.whs_code = :whs_code"
            params["whs_code"] = whs_code
        rows = _rows(gateway, sql + " ORDER BY A.qty DESC", params, "stock")
        if not rows:
            raise NotFoundError(f"no stock found for barcode {box_no}")
        row = rows[0]
        return {
            "boxNo": row["box_no"],
            "itemCode": row["item_code"] or "",
            "itemName": row["item_name"] or "",
            "qty": to_float(row["qty"]),
            "whsCode": row["whs_code"],
            "lotNo": row["lot_no"] or "",
        }

    @staticmethod
    def box_stock(gateway: QueryGateway, box_no: str, saupj: Optional[str] = None) -> dict:
        """Box lookup for shipment / outsourcing scans; the box must hold stock."""
        require(box_no, "boxNo is required")
        sql = """
            SELECT A.box_no, A.item_code, B.item_name, A.qty, A.whs_code
              FROM pms100 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
             WHERE A.box_no = :box_no
               AND A.qty > 0
        """
        params = {"box_no": box_no}
        if saupj:
            sql += " AND A.saupj = :saupj"
            params["saupj"] = saupj
        rows = _rows(gateway, sql + " ORDER BY A.qty DESC", params, "stock")
        if not rows:
            raise NotFoundError(f"box {box_no} holds no stock")
        row = rows[0]
        return {
            "boxNo": row["box_no"],
            "itemCode": row["item_code"] or "",
            "itemName": row["item_name"] or "",
            "qty": to_float(row["qty"]),
            "whsCode": row["whs_code"],
        }

    @staticmethod
    def stocktake_lookup(gateway: QueryGateway, box_no: str, whs_code: Optional[str] = None) -> dict:
        """System quantity for a counted box; unknown boxes come back as new."""
        require(box_no, "boxNo is required")
        sql = """
            SELECT A.box_no, A.item_code, B.item_name, A.qty, A.whs_code, A.lot_no
              FROM pms100 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
             WHERE A.box_no = :box_no
        """
        params = {"box_no": box_no}
        if whs_code:
            sql += " AND A.whs_code = :whs_code"
            params["whs_code"] = whs_code
        rows = _rows(gateway, sql, params, "stock")
        if not rows:
            return {"boxNo": box_no, "itemCode": "", "itemName": "", "systemQty": 0,
                    "whsCode": whs_code or "", "lotNo": "", "isNew": True}
        row = rows[0]
        return {
            "boxNo": row["box_no"],
            "itemCode": row["item_code"] or "",
            "itemName": row["item_name"] or "",
            "systemQty": to_float(row["qty"]),
            "whsCode": row["whs_code"],
            "lotNo": row["lot_no"] or "",
            "isNew": False,
        }

    @staticmethod
    def system_quantities(gateway: QueryGateway, whs_code: str, box_nos: List[str]) -> dict:
        """box_no -> on-hand qty in one warehouse, for count-sheet uploads."""
        if not box_nos:
            return {}
        keys = {f"b{i}": box for i, box in enumerate(box_nos)}
        placeholders = ", ".join(f":{k}" for k in keys)
        rows = _rows(gateway, f"""
            SELECT box_no, qty
              FROM pms100
             WHERE whs_code = :whs_code
               AND box_no IN ({placeholders})
        """, {"whs_code": whs_code, **keys}, "stock")
        return {r["box_no"]: to_float(r["qty"]) for r in rows}

    # -------------------------------------------------------------------------
    # Movement history
    # -------------------------------------------------------------------------

    @staticmethod
    def receive_history(gateway: QueryGateway, whs_code: str, from_date=None, to_date=None) -> list:
        """Open (uncancelled) receipts into a warehouse, candidates for receive-cancel."""
        require(whs_code, "whsCode is required")
        rows = _rows(gateway, """
            SELECT A.id, A.box_no, A.item_code, B.item_name, A.qty, A.move_date, A.ref_no
              FROM pmb300 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
             WHERE A.movement_type = :movement_type
               AND A.to_whs = :whs_code
               AND A.move_date BETWEEN :from_date AND :to_date
               AND A.cancel_yn IS NULL
             ORDER BY A.move_date DESC, A.id DESC
        """, {"movement_type": MovementType.RECEIVE.value, "whs_code": whs_code,
              "from_date": _ymd(from_date, "fromDate"), "to_date": _ymd(to_date, "toDate")},
            "receipts")
        return [{
            "no": idx + 1,
            "movementId": r["id"],
            "boxNo": r["box_no"],
            "itemCode": r["item_code"] or "",
            "itemName": r["item_name"] or "",
            "qty": to_float(r["qty"]),
            "receiveDate": dashed(r["move_date"]),
            "vendorCode": r["ref_no"] or "",
        } for idx, r in enumerate(rows)]

    @staticmethod
    def input_history(gateway: QueryGateway, process_code: str, line_code: str, work_date=None) -> list:
        require(process_code, "processCode and lineCode are required")
        require(line_code, "processCode and lineCode are required")
        rows = _rows(gateway, """
            SELECT A.id, A.box_no, A.item_code, B.item_name, A.qty, A.reg_date, A.ref_no, A.from_whs
              FROM pmb300 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
             WHERE A.movement_type = :movement_type
               AND A.process_code = :process_code
               AND A.line_code = :line_code
               AND A.move_date = :work_date
               AND A.cancel_yn IS NULL
             ORDER BY A.id DESC
        """, {"movement_type": MovementType.PRODUCTION_INPUT.value, "process_code": process_code,
              "line_code": line_code, "work_date": _ymd(work_date, "workDate")}, "inputs")
        return [{
            "no": idx + 1,
            "movementId": r["id"],
            "boxNo": r["box_no"],
            "itemCode": r["item_code"] or "",
            "itemName": r["item_name"] or "",
            "qty": to_float(r["qty"]),
            "inputTime": clock(r["reg_date"]),
            "workOrder": r["ref_no"] or "",
            "whsCode": r["from_whs"] or "",
        } for idx, r in enumerate(rows)]

    @staticmethod
    def shipment_history(gateway: QueryGateway, from_date: str, to_date: str) -> list:
        """Open shipments in a date range, candidates for shipment cancel."""
        if not from_date or not to_date:
            raise ValidationFailed("fromDate and toDate are required")
        rows = _rows(gateway, """
            SELECT A.id, A.box_no, A.item_code, B.item_name, A.qty, A.move_date,
                   A.round_no, A.ref_no, C.cust_name
              FROM pmb300 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
              LEFT JOIN cust_master C ON A.ref_no = C.cust_code
             WHERE A.movement_type = :movement_type
               AND A.move_date BETWEEN :from_date AND :to_date
               AND A.cancel_yn IS NULL
             ORDER BY A.move_date DESC, A.round_no, A.box_no
        """, {"movement_type": MovementType.SHIPMENT_OUT.value,
              "from_date": _ymd(from_date, "fromDate"), "to_date": _ymd(to_date, "toDate")},
            "shipments")
        return [{
            "no": idx + 1,
            "movementId": r["id"],
            "boxNo": r["box_no"],
            "itemCode": r["item_code"] or "",
            "itemName": r["item_name"] or "",
            "qty": to_float(r["qty"]),
            "shipDate": dashed(r["move_date"]),
            "roundNo": r["round_no"],
            "custCode": r["ref_no"] or "",
            "customer": r["cust_name"] or "",
        } for idx, r in enumerate(rows)]

    @staticmethod
    def return_history(gateway: QueryGateway, whs_code: str, from_date: str, to_date: str) -> list:
        """Open returns (boxes and serials) put into a warehouse, candidates for return cancel."""
        require(whs_code, "whsCode is required")
        if not from_date or not to_date:
            raise ValidationFailed("fromDate and toDate are required")
        rows = _rows(gateway, """
            SELECT A.id, A.box_no, A.item_code, B.item_name, A.qty, A.move_date,
                   A.grade, A.ref_no, A.remark, S.serial_no
              FROM pmb300 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
              LEFT JOIN shp_serial S ON A.box_no = S.serial_no
             WHERE A.movement_type = :movement_type
               AND A.to_whs = :whs_code
               AND A.move_date BETWEEN :from_date AND :to_date
               AND A.cancel_yn IS NULL
             ORDER BY A.move_date DESC, A.id DESC
        """, {"movement_type": MovementType.RETURN_IN.value, "whs_code": whs_code,
              "from_date": _ymd(from_date, "fromDate"), "to_date": _ymd(to_date, "toDate")},
            "returns")
        return [{
            "no": idx + 1,
            "movementId": r["id"],
            "type": "SERIAL" if r["serial_no"] else "BOX",
            "boxNo": r["box_no"],
            "itemCode": r["item_code"] or "",
            "itemName": r["item_name"] or "",
            "qty": to_float(r["qty"]),
            "returnDate": dashed(r["move_date"]),
            "grade": r["grade"] or "",
            "destCode": r["ref_no"] or "",
            "remark": r["remark"] or "",
        } for idx, r in enumerate(rows)]

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    @staticmethod
    def slip_lines(gateway: QueryGateway, slip_no: str) -> list:
        require(slip_no, "slipNo is required")
        rows = _rows(gateway, """
            SELECT A.slip_no, A.item_code, B.item_name, A.req_qty, A.issue_qty, A.lot_no, A.wh_code
              FROM tb_slip_detail A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
             WHERE A.slip_no = :slip_no
             ORDER BY A.id
        """, {"slip_no": slip_no}, "slip")
        if not rows:
            raise NotFoundError(f"slip {slip_no} not found")
        return [{
            "no": idx + 1,
            "slipNo": r["slip_no"],
            "itemCode": r["item_code"],
            "itemName": r["item_name"] or "",
            "reqQty": to_float(r["req_qty"]),
            "issueQty": to_float(r["issue_qty"]),
            "remainQty": round(to_float(r["req_qty"]) - to_float(r["issue_qty"]), 3),
            "boxNo": r["lot_no"] or "",
            "whCode": r["wh_code"] or "",
        } for idx, r in enumerate(rows)]

    @staticmethod
    def shipped_serial(gateway: QueryGateway, serial_no: str) -> dict:
        require(serial_no, "serialNo is required")
        rows = _rows(gateway, """
            SELECT A.serial_no, A.item_code, B.item_name, A.cust_code, C.cust_name, A.ship_date
              FROM shp_serial A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
              LEFT JOIN cust_master C ON A.cust_code = C.cust_code
             WHERE A.serial_no = :serial_no
               AND A.status = :status
        """, {"serial_no": serial_no, "status": SerialStatus.SHIPPED.value}, "serial")
        if not rows:
            raise NotFoundError(f"no shipment found for serial {serial_no}")
        r = rows[0]
        return {
            "serialNo": r["serial_no"],
            "itemCode": r["item_code"] or "",
            "itemName": r["item_name"] or "",
            "custCode": r["cust_code"] or "",
            "customer": r["cust_name"] or "",
            "shipDate": dashed(r["ship_date"]),
        }

    # -------------------------------------------------------------------------
    # Production / quality
    # -------------------------------------------------------------------------

    @staticmethod
    def check_items(gateway: QueryGateway, process_code: str, line_code: str) -> list:
        require(process_code, "processCode and lineCode are required")
        require(line_code, "processCode and lineCode are required")
        rows = _rows(gateway, """
            SELECT check_no, check_name, standard
              FROM qms_check_master
             WHERE check_type = 'PERIODIC'
               AND (process_code = :process_code OR process_code IS NULL)
               AND use_yn = 'Y'
             ORDER BY check_no
        """, {"process_code": process_code}, "check items")
        items = [{"no": r["check_no"], "checkName": r["check_name"], "standard": r["standard"] or ""}
                 for r in rows] or DEFAULT_CHECK_ITEMS
        return [dict(item, result=None, value="") for item in items]

    @staticmethod
    def work_orders(gateway: QueryGateway, process_code: str, line_code: str, work_date=None,
                    statuses=None, to_date=None) -> list:
        """
        Work orders for a process/line on one day, or over a date range when
        to_date is given, optionally limited to some statuses.
        """
        require(process_code, "processCode and lineCode are required")
        require(line_code, "processCode and lineCode are required")
        from_ymd = _ymd(work_date, "workDate")
        to_ymd = _ymd(to_date, "toDate") if to_date else from_ymd
        sql = """
            SELECT A.order_no, A.item_code, B.item_name, A.plan_qty, A.assembly_qty,
                   A.work_date, A.status, A.start_time, A.end_time
              FROM pmo100 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
             WHERE A.process_code = :process_code
               AND A.line_code = :line_code
               AND A.work_date BETWEEN :from_date AND :to_date
        """
        params = {"process_code": process_code, "line_code": line_code,
                  "from_date": from_ymd, "to_date": to_ymd}
        if statuses:
            keys = {f"s{i}": s for i, s in enumerate(statuses)}
            sql += " AND A.status IN (" + ", ".join(f":{k}" for k in keys) + ")"
            params.update(keys)
        rows = _rows(gateway, sql + " ORDER BY A.work_date, A.seq_no, A.order_no", params, "work orders")
        return [{
            "orderNo": r["order_no"],
            "itemCode": r["item_code"] or "",
            "itemName": r["item_name"] or "",
            "planQty": to_float(r["plan_qty"]),
            "assemblyQty": to_float(r["assembly_qty"]),
            "planDate": dashed(r["work_date"]),
            "status": r["status"],
            "statusName": STATUS_NAMES.get(r["status"], r["status"]),
            "startTime": clock(r["start_time"]) or None,
            "endTime": clock(r["end_time"]) or None,
        } for r in rows]

    @staticmethod
    def kanban_check(gateway: QueryGateway, kanban_no: str, today: Optional[date] = None) -> dict:
        """
        Classify a kanban card as valid, invalid or expired.

        Voided cards (status N/X) and unknown numbers are invalid; a card whose
        expiry date lies before today is expired. No expiry means no limit.
        """
        require(kanban_no, "kanbanNo is required")
        rows = _rows(gateway, """
            SELECT A.kanban_no, A.item_code, B.item_name, A.qty, A.from_location,
                   A.to_location, A.status, A.expire_date
              FROM kbn100 A
              LEFT JOIN bom_master B ON A.item_code = B.item_code
             WHERE A.kanban_no = :kanban_no
        """, {"kanban_no": kanban_no}, "kanban")
        if not rows:
            return {"kanbanNo": kanban_no, "itemCode": "", "itemName": "", "qty": 0,
                    "fromLocation": "", "toLocation": "", "expireDate": "",
                    "status": "invalid", "message": "Unknown kanban"}

        r = rows[0]
        today = today or date.today()
        expiry = parse_ymd(r["expire_date"])
        if r["status"] in ("N", "X"):
            status, message = "invalid", "Kanban has been voided"
        elif r["expire_date"] and expiry is None:
            status, message = "invalid", "Kanban expiry date is unreadable"
        elif expiry is not None and expiry < today:
            status, message = "expired", f"Kanban expired on {expiry.isoformat()}"
        else:
            status, message = "valid", "Kanban is valid"

        return {
            "kanbanNo": r["kanban_no"],
            "itemCode": r["item_code"] or "",
            "itemName": r["item_name"] or "",
            "qty": to_float(r["qty"]),
            "fromLocation": r["from_location"] or "",
            "toLocation": r["to_location"] or "",
            "expireDate": dashed(r["expire_date"]),
            "status": status,
            "message": message,
        }
