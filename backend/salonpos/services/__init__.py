from .approval_service import (
    approve_ticket,
    close_ticket,
    expire_ticket,
    get_pending_approvals,
    reject_ticket,
)
from .queue_service import (
    get_ordered_technicians,
    join_ready_queue,
    leave_ready_queue,
)

__all__ = [
    'close_ticket', 'approve_ticket', 'reject_ticket', 'expire_ticket',
    'get_pending_approvals',
    'join_ready_queue', 'leave_ready_queue', 'get_ordered_technicians',
]
