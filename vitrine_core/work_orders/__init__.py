from vitrine_core.work_orders.lifecycle import (
    build_temp_work_order_number,
    complete_work_order,
    create_work_order,
    delete_service_request,
    pause_work_order,
    resume_work_order,
)

__all__ = [
    "build_temp_work_order_number",
    "complete_work_order",
    "create_work_order",
    "delete_service_request",
    "pause_work_order",
    "resume_work_order",
]
