from .center import User, State, Center
from .course import Course, Batch
from .student import Student
from .enrollment import Enrollment
from .payment import StudentCoursePayment, StudentPaymentLock
from .invoice import CenterInvoice, CenterInvoiceItem, InvoiceStatusHistory, INVOICE_STATUSES
from .notification import Notification

__all__ = [
    "User", "State", "Center",
    "Course", "Batch",
    "Student",
    "Enrollment",
    "StudentCoursePayment", "StudentPaymentLock",
    "CenterInvoice", "CenterInvoiceItem", "InvoiceStatusHistory", "INVOICE_STATUSES",
    "Notification",
]
