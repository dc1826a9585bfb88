"""
Work Order Lifecycle
====================
scheduled (P) -> ready (R) -> started (W) -> completed (C)

Each action is a single conditional UPDATE guarded by the statuses it may
leave from, so two operators pressing start at once cannot both win.
"""

import logging
from typing import Dict, FrozenSet, NamedTuple

from ..gateway import QueryGateway
from ..models import WorkOrderStatus
from ..security import RequestContext
from .ledger_service import InvalidTransitionError, NotFoundError, ValidationFailed, require

logger = logging.getLogger(__name__)


class Transition(NamedTuple):
    allowed_from: FrozenSet[str]
    target: str
    stamp_column: str  # timestamp set by the action, '' for none


TRANSITIONS: Dict[str, Transition] = {
    "ready": Transition(frozenset({WorkOrderStatus.SCHEDULED.value}),
                        WorkOrderStatus.READY.value, ""),
    "start": Transition(frozenset({WorkOrderStatus.SCHEDULED.value, WorkOrderStatus.READY.value}),
                        WorkOrderStatus.STARTED.value, "start_time"),
    "end": Transition(frozenset({WorkOrderStatus.STARTED.value}),
                      WorkOrderStatus.COMPLETED.value, "end_time"),
}

# Actions each screen may send
WORK_ACTIONS = frozenset({"start", "end"})
NEXT_WORK_ACTIONS = frozenset({"ready", "start"})

STATUS_NAMES = {
    WorkOrderStatus.SCHEDULED.value: "scheduled",
    WorkOrderStatus.READY.value: "ready",
    WorkOrderStatus.STARTED.value: "started",
    WorkOrderStatus.COMPLETED.value: "completed",
}


class WorkOrderService:

    @staticmethod
    def apply_action(gateway: QueryGateway, ctx: RequestContext, order_no: str, action: str,
                     accepted_actions: FrozenSet[str] = frozenset(TRANSITIONS)) -> dict:
        """
        Move a work order along its lifecycle.

        Raises:
            ValidationFailed: missing order number or an action this screen can't send
            NotFoundError: unknown order
            InvalidTransitionError: action not allowed from the current status
        """
        require(order_no, "orderNo is required")
        action = (action or "").strip().lower()
        if action not in accepted_actions:
            raise ValidationFailed("invalid action")
        transition = TRANSITIONS[action]

        allowed = sorted(transition.allowed_from)
        placeholders = ", ".join(f":from_{i}" for i in range(len(allowed)))
        params = {f"from_{i}": status for i, status in enumerate(allowed)}
        params.update({"target": transition.target, "user": ctx.user_id, "order_no": order_no})
        stamp = f", {transition.stamp_column} = CURRENT_TIMESTAMP" if transition.stamp_column else ""

        with gateway.transaction() as tx:
            rows = tx.execute(
                f"""
                UPDATE pmo100
                   SET status = :target{stamp},
                       upd_user = :user,
                       upd_date = CURRENT_TIMESTAMP
                 WHERE order_no = :order_no
                   AND status IN ({placeholders})
                """,
                params,
            )
            if not rows:
                current = tx.scalar("SELECT status FROM pmo100 WHERE order_no = :order_no",
                                    {"order_no": order_no})
                if current is None:
                    raise NotFoundError(f"work order {order_no} not found")
                raise InvalidTransitionError(
                    f"cannot {action} work order {order_no}: it is {STATUS_NAMES.get(current, current)}"
                )

        logger.info("Work order %s -> %s by %s", order_no, transition.target, ctx.user_id)
        return {"orderNo": order_no, "status": transition.target,
                "statusName": STATUS_NAMES[transition.target]}
