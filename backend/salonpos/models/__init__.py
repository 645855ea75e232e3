from .stores import Store, Service
from .employees import Employee, EmployeeStore
from .tickets import SaleTicket, TicketItem, TicketActivityLog, ApprovalStatus, ApprovalLevel, TERMINAL_STATUSES
from .queue import TechnicianQueueEntry, QueueStatus
from .attendance import AttendanceRecord, AttendanceStatus, PayType

__all__ = [
    'Store', 'Service',
    'Employee', 'EmployeeStore',
    'SaleTicket', 'TicketItem', 'TicketActivityLog',
    'ApprovalStatus', 'ApprovalLevel', 'TERMINAL_STATUSES',
    'TechnicianQueueEntry', 'QueueStatus',
    'AttendanceRecord', 'AttendanceStatus', 'PayType',
]
