# supportdesk/models.py
from typing import Literal, get_args

# Roles
ADMIN = "ADMIN"
DEVELOPER = "DEVELOPER"
USER = "USER"
Role = Literal["ADMIN", "DEVELOPER", "USER"]

# Ticket status pipeline, in intended order
TO_DO = "TO DO"
IN_PROGRESS = "In Progress"
IN_PROGRESS_QA = "In Progress QA"
COMPLETED = "Completed"
DONE = "Done"
TicketStatus = Literal["TO DO", "In Progress", "In Progress QA", "Completed", "Done"]
TICKET_STATUSES = get_args(TicketStatus)

Priority = Literal["Low", "Medium", "High", "Critical"]
PRIORITIES = get_args(Priority)

TicketProduct = Literal["RxScan", "Medscribe", "Legalyze", "DICOM Viewer", "Breast Cancer Detection", "Other"]
LicenseProduct = Literal["RxScan", "Medscribe", "Legalyze", "DICOM Viewer", "Breast Cancer Detection", "All Products"]
ALL_PRODUCTS = "All Products"

NotificationType = Literal["ticket_created", "status_change", "ticket_assigned", "comment_added", "ticket_resolved"]

# Reply author side
SenderRole = Literal["USER", "DEVELOPER"]

# Collection names
USERS = "users"
LICENSES = "licenses"
TICKETS = "tickets"
REPLIES = "replies"
NOTIFICATIONS = "notifications"
SYSTEM_STATE = "system_state"
