from visitdesk.db.models.audit import AuditLog
from visitdesk.db.models.form import Form
from visitdesk.db.models.premise import Premise
from visitdesk.db.models.qr_code import QRCode
from visitdesk.db.models.visit import Visit, VisitStatus
from visitdesk.db.models.visitor import VisitorIdentity

__all__ = [
    "AuditLog",
    "Form",
    "Premise",
    "QRCode",
    "Visit",
    "VisitStatus",
    "VisitorIdentity",
]
