# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles
# (users ↔ schools, classes ↔ users, ...).

from app.models.school import School  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.subject import Subject  # noqa: F401
from app.models.school_class import SchoolClass, ClassTeacherSubject  # noqa: F401
from app.models.exercise import Exercise  # noqa: F401
from app.models.progress import StudentProgress  # noqa: F401
from app.models.grade import Grade  # noqa: F401
from app.models.notification import Notification, NotificationAttachment, NotificationRead  # noqa: F401
from app.models.chat import Chat, ChatMessage  # noqa: F401
from app.models.contact import Contact  # noqa: F401
