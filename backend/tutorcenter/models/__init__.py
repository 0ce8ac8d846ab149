# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, la FK tutorings.student_attendance_id → student_attendances.id
# échoue avec NoReferencedTableError si student_attendance.py n'est pas chargé.

from tutorcenter.models.school_class import SchoolClass  # noqa: F401  doit précéder student
from tutorcenter.models.student import Student  # noqa: F401
from tutorcenter.models.student_attendance import StudentAttendance  # noqa: F401
from tutorcenter.models.settlement_invoice import SettlementInvoice  # noqa: F401
from tutorcenter.models.tutoring import Tutoring  # noqa: F401
