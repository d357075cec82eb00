# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from counseling.models.admin import Admin  # noqa: F401  (doit précéder appointment)
from counseling.models.student import Student, StudentNote  # noqa: F401
from counseling.models.appointment import Appointment, FollowUpEmail  # noqa: F401
