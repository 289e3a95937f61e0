"""
Règles d'accès : « l'acteur A peut-il effectuer l'action X sur la ressource R ? »

Évaluation pure (aucun accès BDD), dans cet ordre :
1. Hiérarchie des rôles (superadmin > admin > teacher > student)
2. Cloisonnement par établissement (sauf superadmin)
3. Un enseignant ne modifie un exercice / une note que s'il enseigne la matière dans la classe
4. Un enseignant ne modifie / supprime que ce qu'il a créé
5. Données d'élève : l'élève ne voit que les siennes, l'enseignant celles de ses classes

Chaque refus porte un motif distinct ; enforce() choisit 403 ou 404 selon le motif.
"""

import uuid
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel

from app.exceptions import AuthorizationError, NotFoundError
from app.schemas.common import CamelModel


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


# Plus le rang est petit, plus le rôle est privilégié
ROLE_RANK = {
    Role.SUPERADMIN: 0,
    Role.ADMIN: 1,
    Role.TEACHER: 2,
    Role.STUDENT: 3,
}


def has_min_role(role: str, required: str) -> bool:
    """True si `role` est au moins aussi privilégié que `required`."""
    return ROLE_RANK[Role(role)] <= ROLE_RANK[Role(required)]


def is_staff(role: str) -> bool:
    """Admin ou superadmin."""
    return has_min_role(role, Role.ADMIN)


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceKind(str, Enum):
    SCHOOL = "school"
    USER = "user"
    CLASS = "class"
    SUBJECT = "subject"
    EXERCISE = "exercise"
    GRADE = "grade"
    PROGRESS = "progress"
    NOTIFICATION = "notification"
    CHAT = "chat"


class Denial(str, Enum):
    INSUFFICIENT_ROLE = "insufficient_role"
    OTHER_SCHOOL = "other_school"
    NOT_TEACHING = "not_teaching_subject_in_class"
    NOT_OWNER = "not_owner"
    NOT_OWN_DATA = "not_own_data"
    STUDENT_NOT_TAUGHT = "student_not_taught"


DENIAL_MESSAGES = {
    Denial.INSUFFICIENT_ROLE: "Accès refusé. Permissions insuffisantes.",
    Denial.OTHER_SCHOOL: "Ressource introuvable.",
    Denial.NOT_TEACHING: "Vous n'enseignez pas cette matière dans cette classe.",
    Denial.NOT_OWNER: "Vous ne pouvez modifier que vos propres ressources.",
    Denial.NOT_OWN_DATA: "Vous ne pouvez accéder qu'à vos propres données.",
    Denial.STUDENT_NOT_TAUGHT: "Cet élève n'appartient à aucune de vos classes.",
}

# Motifs traduits en 404 pour ne pas révéler l'existence d'une ressource d'un autre établissement
NOT_FOUND_DENIALS = {Denial.OTHER_SCHOOL}

TEACH_SCOPED = {ResourceKind.EXERCISE, ResourceKind.GRADE}
OWNER_SCOPED = {ResourceKind.EXERCISE, ResourceKind.GRADE, ResourceKind.NOTIFICATION}
WRITE_ACTIONS = {Action.CREATE, Action.UPDATE, Action.DELETE}


class TeachingAssignment(CamelModel):
    """Matières enseignées par un enseignant dans une classe."""
    class_id: uuid.UUID
    subject_ids: list[uuid.UUID] = []


class Actor(BaseModel):
    """Contexte de l'appelant, construit à chaque requête (tenant explicite)."""
    id: uuid.UUID
    role: Role
    school_id: Optional[uuid.UUID] = None
    student_class_id: Optional[uuid.UUID] = None
    teaching_classes: list[TeachingAssignment] = []

    @property
    def teaching_class_ids(self) -> set[uuid.UUID]:
        return {tc.class_id for tc in self.teaching_classes}

    def teaches(self, class_id: uuid.UUID, subject_id: Optional[uuid.UUID] = None) -> bool:
        """Enseigne dans la classe (et la matière, si précisée)."""
        for tc in self.teaching_classes:
            if tc.class_id == class_id:
                return subject_id is None or subject_id in tc.subject_ids
        return False


class Resource(BaseModel):
    """Description minimale d'une ressource pour l'évaluation des règles."""
    kind: ResourceKind
    school_id: Optional[uuid.UUID] = None
    class_id: Optional[uuid.UUID] = None
    subject_id: Optional[uuid.UUID] = None
    owner_id: Optional[uuid.UUID] = None      # createdBy / teacher
    student_id: Optional[uuid.UUID] = None    # propriétaire des données élève


class Decision(NamedTuple):
    allowed: bool
    reason: Optional[Denial] = None


ALLOW = Decision(True)


def can_act(actor: Actor, action: Action, resource: Resource, min_role: Role = Role.STUDENT) -> Decision:
    """Évalue les règles d'accès dans l'ordre de priorité."""
    if not has_min_role(actor.role, min_role):
        return Decision(False, Denial.INSUFFICIENT_ROLE)

    if actor.role == Role.SUPERADMIN:
        return ALLOW

    if resource.school_id is not None and resource.school_id != actor.school_id:
        return Decision(False, Denial.OTHER_SCHOOL)

    if actor.role == Role.TEACHER and resource.kind in TEACH_SCOPED and action in WRITE_ACTIONS:
        if resource.class_id is None or not actor.teaches(resource.class_id, resource.subject_id):
            return Decision(False, Denial.NOT_TEACHING)

    if (
        actor.role == Role.TEACHER
        and resource.kind in OWNER_SCOPED
        and action in (Action.UPDATE, Action.DELETE)
        and resource.owner_id != actor.id
    ):
        return Decision(False, Denial.NOT_OWNER)

    if resource.student_id is not None:
        if actor.role == Role.STUDENT and resource.student_id != actor.id:
            return Decision(False, Denial.NOT_OWN_DATA)
        if actor.role == Role.TEACHER and resource.class_id not in actor.teaching_class_ids:
            return Decision(False, Denial.STUDENT_NOT_TAUGHT)

    return ALLOW


def enforce(decision: Decision) -> None:
    """Lève l'erreur HTTP correspondant au motif de refus."""
    if decision.allowed:
        return
    message = DENIAL_MESSAGES[decision.reason]
    if decision.reason in NOT_FOUND_DENIALS:
        raise NotFoundError(message, error=decision.reason.value)
    raise AuthorizationError(message, error=decision.reason.value)


def authorize(actor: Actor, action: Action, resource: Resource, min_role: Role = Role.STUDENT) -> None:
    """Raccourci can_act + enforce utilisé par les services."""
    enforce(can_act(actor, action, resource, min_role))
