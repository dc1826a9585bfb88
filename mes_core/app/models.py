"""
MES Warehouse / Shop-floor Data Models
======================================
Schema for the PDA back-end. Table names keep the plant's legacy codes
(PMS100 stock, PMB300 movement history, PMO100 work orders, ...) in lower
case so existing reports and procedures keep pointing at the same tables.

Business dates are fixed-width YYYYMMDD strings like the rest of the plant
schema; audit timestamps are real DateTime columns filled by the database.

Statements against these tables are written as parameterized SQL in the
service layer; the ORM classes here define the schema and serve seeding
scripts.
"""

from enum import Enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Boolean, Index,
    UniqueConstraint, CheckConstraint, func
)
from .db import Base


# =============================================================================
# ENUMS
# =============================================================================

class MovementType(str, Enum):
    """Category of a single quantity change in the ledger"""
    RECEIVE = "RECEIVE"
    ISSUE = "ISSUE"                      # slip-based issue
    TRANSFER = "TRANSFER"                # issue without slip, warehouse to warehouse
    RELEASE = "RELEASE"
    OUTSOURCE_OUT = "OUTSOURCE_OUT"
    SHIPMENT_OUT = "SHIPMENT_OUT"
    RETURN_IN = "RETURN_IN"
    PRODUCTION_INPUT = "PRODUCTION_INPUT"
    PRODUCTION_RESULT = "PRODUCTION_RESULT"
    DISPOSAL = "DISPOSAL"
    REPACK_OUT = "REPACK_OUT"            # quantity split off a source box
    REPACK_IN = "REPACK_IN"
    ITEM_CHANGE = "ITEM_CHANGE"          # CKD part number change, qty unchanged
    STOCKTAKE = "STOCKTAKE"


class WorkOrderStatus(str, Enum):
    SCHEDULED = "P"
    READY = "R"
    STARTED = "W"
    COMPLETED = "C"


class CheckType(str, Enum):
    SMD = "SMD"
    ASSEMBLY = "ASSEMBLY"


class SerialStatus(str, Enum):
    SHIPPED = "SHIPPED"
    RETURNED = "RETURNED"


class ReturnGrade(str, Enum):
    GOOD = "GOOD"
    DEFECT = "DEFECT"


# =============================================================================
# LEDGER
# =============================================================================

class StockRecord(Base):
    """
    Quantity on hand for one physical unit (box / serial) at one location.
    Never deleted; a fully consumed unit stays at qty 0.
    """
    __tablename__ = "pms100"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saupj = Column(String(10), nullable=False, default="10")
    box_no = Column(String(50), nullable=False)
    whs_code = Column(String(20), nullable=False)
    item_code = Column(String(50), nullable=True)
    qty = Column(Numeric(15, 3), nullable=False, default=0)
    lot_no = Column(String(50), nullable=True)
    location = Column(String(50), nullable=True)  # rack / bin inside the warehouse

    reg_user = Column(String(20), nullable=True)
    reg_date = Column(DateTime, server_default=func.current_timestamp())
    upd_user = Column(String(20), nullable=True)
    upd_date = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("box_no", "whs_code", name="uq_pms100_box_whs"),
        CheckConstraint("qty >= 0", name="ck_pms100_qty_non_negative"),
    )


class MovementRecord(Base):
    """
    Append-only audit trail of quantity changes.

    The only edit ever made to a row is flipping cancel_yn to 'Y' (once),
    by a cancellation endpoint reversing the movement.
    """
    __tablename__ = "pmb300"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saupj = Column(String(10), nullable=False)
    move_date = Column(String(8), nullable=False, index=True)  # YYYYMMDD
    box_no = Column(String(50), nullable=False, index=True)
    item_code = Column(String(50), nullable=True)
    from_whs = Column(String(20), nullable=True)
    to_whs = Column(String(20), nullable=True)
    qty = Column(Numeric(15, 3), nullable=False)  # delta; stock-take difference
    movement_type = Column(String(20), nullable=False)

    # References: slip no, work order, vendor or customer code
    ref_no = Column(String(50), nullable=True)
    process_code = Column(String(20), nullable=True)
    line_code = Column(String(20), nullable=True)

    # Shipment header fields
    round_no = Column(Integer, nullable=True)
    dest_code = Column(String(20), nullable=True)
    out_type = Column(String(10), nullable=True)
    car_no = Column(String(20), nullable=True)

    # Stock-take snapshot
    system_qty = Column(Numeric(15, 3), nullable=True)
    actual_qty = Column(Numeric(15, 3), nullable=True)

    grade = Column(String(10), nullable=True)  # returns: GOOD / DEFECT
    remark = Column(String(500), nullable=True)

    reg_user = Column(String(20), nullable=True)
    reg_date = Column(DateTime, server_default=func.current_timestamp())

    cancel_yn = Column(String(1), nullable=True)
    cancel_user = Column(String(20), nullable=True)
    cancel_date = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_pmb300_type_date", "movement_type", "move_date"),
    )


# =============================================================================
# PRODUCTION / QUALITY
# =============================================================================

class WorkOrder(Base):
    """Planned production / inspection work with its P → R → W → C lifecycle"""
    __tablename__ = "pmo100"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_no = Column(String(30), unique=True, nullable=False, index=True)
    process_code = Column(String(20), nullable=False)
    line_code = Column(String(20), nullable=False)
    item_code = Column(String(50), nullable=True)
    plan_qty = Column(Numeric(15, 3), default=0)
    work_date = Column(String(8), nullable=False)
    seq_no = Column(Integer, default=0)
    status = Column(String(1), nullable=False, default=WorkOrderStatus.SCHEDULED.value)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    assembly_qty = Column(Numeric(15, 3), default=0)

    upd_user = Column(String(20), nullable=True)
    upd_date = Column(DateTime, nullable=True)


class InspectionRecord(Base):
    """Pass/fail outcome for one box or serial (SMD inspection, assembly result)"""
    __tablename__ = "pmb400"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saupj = Column(String(10), nullable=False)
    check_type = Column(String(10), nullable=False)
    check_date = Column(String(8), nullable=False)
    process_code = Column(String(20), nullable=True)
    line_code = Column(String(20), nullable=True)
    order_no = Column(String(30), nullable=True)
    unit_no = Column(String(50), nullable=False)
    item_code = Column(String(50), nullable=True)
    result = Column(String(2), nullable=False)  # OK / NG
    check_time = Column(String(20), nullable=True)

    reg_user = Column(String(20), nullable=True)
    reg_date = Column(DateTime, server_default=func.current_timestamp())


class PeriodicCheck(Base):
    """Header of one periodic line check"""
    __tablename__ = "qms300"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saupj = Column(String(10), nullable=False)
    check_date = Column(String(8), nullable=False)
    process_code = Column(String(20), nullable=False)
    line_code = Column(String(20), nullable=False)
    check_type = Column(String(20), nullable=False, default="PERIODIC")
    final_result = Column(String(2), nullable=False)
    ok_count = Column(Integer, default=0)
    ng_count = Column(Integer, default=0)
    remark = Column(String(500), nullable=True)

    reg_user = Column(String(20), nullable=True)
    reg_date = Column(DateTime, server_default=func.current_timestamp())


class PeriodicCheckDetail(Base):
    __tablename__ = "qms310"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saupj = Column(String(10), nullable=False)
    check_date = Column(String(8), nullable=False)
    process_code = Column(String(20), nullable=False)
    line_code = Column(String(20), nullable=False)
    check_no = Column(Integer, nullable=False)
    check_name = Column(String(100), nullable=True)
    standard = Column(String(100), nullable=True)
    result = Column(String(2), nullable=True)
    measure_value = Column(String(50), nullable=True)

    reg_user = Column(String(20), nullable=True)
    reg_date = Column(DateTime, server_default=func.current_timestamp())


class CheckMaster(Base):
    __tablename__ = "qms_check_master"

    id = Column(Integer, primary_key=True, autoincrement=True)
    check_no = Column(Integer, nullable=False)
    check_name = Column(String(100), nullable=False)
    standard = Column(String(100), nullable=True)
    check_type = Column(String(20), nullable=False, default="PERIODIC")
    process_code = Column(String(20), nullable=True)  # NULL applies to every process
    use_yn = Column(String(1), default="Y")


class Kanban(Base):
    __tablename__ = "kbn100"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kanban_no = Column(String(50), unique=True, nullable=False)
    item_code = Column(String(50), nullable=True)
    qty = Column(Numeric(15, 3), default=0)
    from_location = Column(String(50), nullable=True)
    to_location = Column(String(50), nullable=True)
    status = Column(String(1), nullable=True)  # N / X = voided
    expire_date = Column(String(8), nullable=True)  # YYYYMMDD


# =============================================================================
# OUTBOUND / DOCUMENTS
# =============================================================================

class ShippedSerial(Base):
    """Serialized finished goods that left the plant and may come back"""
    __tablename__ = "shp_serial"

    id = Column(Integer, primary_key=True, autoincrement=True)
    serial_no = Column(String(50), unique=True, nullable=False)
    item_code = Column(String(50), nullable=True)
    cust_code = Column(String(20), nullable=True)
    ship_date = Column(String(8), nullable=True)
    status = Column(String(10), nullable=False, default=SerialStatus.SHIPPED.value)
    whs_code = Column(String(20), nullable=True)
    return_date = Column(String(8), nullable=True)
    return_reason = Column(String(200), nullable=True)
    return_condition = Column(String(20), nullable=True)

    upd_user = Column(String(20), nullable=True)
    upd_date = Column(DateTime, nullable=True)


class ShipmentRound(Base):
    """Rounds handed out per shipping day; the unique pair keeps concurrent shipments apart"""
    __tablename__ = "shp_round"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wk_date = Column(String(8), nullable=False)
    round_no = Column(Integer, nullable=False)
    reg_user = Column(String(20), nullable=True)
    reg_date = Column(DateTime, server_default=func.current_timestamp())

    __table_args__ = (
        UniqueConstraint("wk_date", "round_no", name="uq_shp_round_day"),
    )


class RepackHistory(Base):
    """One new box (or serial label) made from a source unit"""
    __tablename__ = "pmb600"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saupj = Column(String(10), nullable=False)
    repack_date = Column(String(8), nullable=False)
    repack_type = Column(String(10), nullable=False, default="BOX")  # BOX / SERIAL
    source_no = Column(String(50), nullable=False, index=True)
    new_no = Column(String(50), nullable=False, index=True)
    item_code = Column(String(50), nullable=True)
    whs_code = Column(String(20), nullable=True)
    qty = Column(Numeric(15, 3), nullable=False)

    reg_user = Column(String(20), nullable=True)
    reg_date = Column(DateTime, server_default=func.current_timestamp())


class ItemChangeHistory(Base):
    """CKD part number changes on a box"""
    __tablename__ = "pmb610"

    id = Column(Integer, primary_key=True, autoincrement=True)
    saupj = Column(String(10), nullable=False)
    change_date = Column(String(8), nullable=False)
    box_no = Column(String(50), nullable=False, index=True)
    whs_code = Column(String(20), nullable=True)
    old_item_code = Column(String(50), nullable=True)
    new_item_code = Column(String(50), nullable=False)
    qty = Column(Numeric(15, 3), nullable=True)

    reg_user = Column(String(20), nullable=True)
    reg_date = Column(DateTime, server_default=func.current_timestamp())


class SlipDetail(Base):
    """Material request slip lines issued against by the PDA"""
    __tablename__ = "tb_slip_detail"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slip_no = Column(String(30), nullable=False, index=True)
    item_code = Column(String(50), nullable=False)
    req_qty = Column(Numeric(15, 3), nullable=False)
    issue_qty = Column(Numeric(15, 3), default=0)
    lot_no = Column(String(50), nullable=True)  # box issued against the line
    wh_code = Column(String(20), nullable=True)
    issue_user = Column(String(20), nullable=True)
    issue_date = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("slip_no", "item_code", name="uq_slip_item"),
    )


# =============================================================================
# MASTER DATA
# =============================================================================

class CommonCode(Base):
    __tablename__ = "bma100"

    id = Column(Integer, primary_key=True, autoincrement=True)
    major_code = Column(String(10), nullable=False, index=True)
    minor_code = Column(String(20), nullable=False)
    code_name = Column(String(100), nullable=False)
    use_flag = Column(String(1), default="1")


class User(Base):
    __tablename__ = "bma200"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(20), nullable=False)
    saupj = Column(String(10), nullable=False)
    user_name = Column(String(50), nullable=False)
    password_hash = Column(String(100), nullable=False)
    role = Column(String(30), nullable=False, default="Operator")
    op_code = Column(String(20), nullable=True)
    line_code = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True)

    __table_args__ = (
        UniqueConstraint("user_id", "saupj", name="uq_bma200_user_saupj"),
    )


class Item(Base):
    __tablename__ = "bom_master"

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_code = Column(String(50), unique=True, nullable=False)
    item_name = Column(String(200), nullable=False)


class Warehouse(Base):
    __tablename__ = "tb_warehouse"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wh_code = Column(String(20), unique=True, nullable=False)
    wh_name = Column(String(100), nullable=False)
    wh_type = Column(String(20), nullable=True)  # material / line-side / finished / virtual
    saupj = Column(String(10), nullable=False)
    use_yn = Column(String(1), default="Y")


class Line(Base):
    __tablename__ = "tb_line"

    id = Column(Integer, primary_key=True, autoincrement=True)
    line_code = Column(String(20), unique=True, nullable=False)
    line_name = Column(String(100), nullable=False)
    op_code = Column(String(20), nullable=True)
    saupj = Column(String(10), nullable=False)
    use_yn = Column(String(1), default="Y")


class Process(Base):
    __tablename__ = "tb_process"

    id = Column(Integer, primary_key=True, autoincrement=True)
    op_code = Column(String(20), unique=True, nullable=False)
    op_name = Column(String(100), nullable=False)
    op_type = Column(String(20), nullable=True)
    whs_code = Column(String(20), nullable=True)  # where finished results are stocked
    saupj = Column(String(10), nullable=False)
    use_yn = Column(String(1), default="Y")


class Vendor(Base):
    """Outsourcing partners (vendor_type 'O')"""
    __tablename__ = "vendor_master"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_code = Column(String(20), unique=True, nullable=False)
    vendor_name = Column(String(200), nullable=False)
    vendor_type = Column(String(1), default="O")
    tel_no = Column(String(20), nullable=True)
    addr = Column(String(300), nullable=True)
    use_yn = Column(String(1), default="Y")


class Customer(Base):
    __tablename__ = "cust_master"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cust_code = Column(String(20), unique=True, nullable=False)
    cust_name = Column(String(200), nullable=False)
