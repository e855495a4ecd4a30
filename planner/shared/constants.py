ADMIN = "ADMIN"
MANAGER = "MANAGER"
TRAINER = "TRAINER"

ROLE_ATTRS = {
    ADMIN: "is_admin",
    MANAGER: "is_manager",
    TRAINER: "is_trainer",
}

USER_ACTIVE = "ACTIVE"
USER_DISABLED = "DISABLED"
USER_PENDING = "PENDING"

# Seance lifecycle
PLANNED = "PLANNED"
IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"
REPORTED = "REPORTED"
CANCELLED = "CANCELLED"

SEANCE_STATUSES = (PLANNED, IN_PROGRESS, COMPLETED, REPORTED, CANCELLED)

# Seances in these states occupy their trainer's time slot.
BLOCKING_STATUSES = (PLANNED, IN_PROGRESS, COMPLETED)

REPORT_PENDING = "PENDING"
REPORT_APPROVED = "APPROVED"
REPORT_REJECTED = "REJECTED"

REPORT_STATUSES = (REPORT_PENDING, REPORT_APPROVED, REPORT_REJECTED)

PRESENT = "PRESENT"
ABSENT = "ABSENT"
EXCUSED = "EXCUSED"

ATTENDANCE_STATUSES = (PRESENT, ABSENT, EXCUSED)
ATTENDED_STATUSES = (PRESENT, EXCUSED)

SEANCE_ASSIGNED = "SEANCE_ASSIGNED"
SEANCE_MODIFIED = "SEANCE_MODIFIED"
SEANCE_REPORTED = "SEANCE_REPORTED"
GENERAL = "GENERAL"

NOTIFICATION_CATEGORIES = (SEANCE_ASSIGNED, SEANCE_MODIFIED, SEANCE_REPORTED, GENERAL)

DASHBOARD_LINK = "/dashboard"
