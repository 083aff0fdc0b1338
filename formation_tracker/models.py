"""Data models for formation-tracker."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TrainingStatus(str, Enum):
    """Lifecycle status of a training, also used as the automation trigger key."""

    PREPARATION = "preparacao"
    IN_TRAINING = "em-formacao"
    POST_TRAINING = "pos-formacao"
    COMPLETED = "concluido"

    # Terminal, reachable from any non-completed state
    ARCHIVED = "arquivado"


class TaskStatus(str, Enum):
    """Workflow status of a follow-up task (demanda)."""

    PENDING = "Pendente"
    IN_PROGRESS = "Em andamento"
    DONE = "Concluída"
    AWAITING_REPLY = "Aguardando retorno"


class TaskPriority(str, Enum):
    NORMAL = "Normal"
    URGENT = "Urgente"


class TaskOrigin(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatica"


class MilestoneKind(str, Enum):
    DIAGNOSTIC = "diagnostica"
    SIMULADO = "simulado"
    DEVOLUTIVA = "devolutiva"


# Forward path of the training lifecycle
STATUS_SEQUENCE: tuple[TrainingStatus, ...] = (
    TrainingStatus.PREPARATION,
    TrainingStatus.IN_TRAINING,
    TrainingStatus.POST_TRAINING,
    TrainingStatus.COMPLETED,
)

# Statuses whose trainings show up in the follow-up panel
FOLLOW_UP_STATUSES: set[TrainingStatus] = {
    TrainingStatus.POST_TRAINING,
    TrainingStatus.COMPLETED,
}

# Map: trigger status -> description template of the automated task
AUTOMATED_TASK_TRIGGERS: dict[TrainingStatus, str] = {
    TrainingStatus.POST_TRAINING: (
        "Gerar relatório e coletar despesas da formação: {title}"
    ),
    TrainingStatus.COMPLETED: (
        "Enviar e-mail de agradecimento e feedback para a formação: {title}"
    ),
}

# Fixed slot order: diagnostic, simulados 1-4, devolutivas 1-4
MILESTONE_KEYS: tuple[str, ...] = (
    "diagnostica",
    "s1",
    "s2",
    "s3",
    "s4",
    "d1",
    "d2",
    "d3",
    "d4",
)


def milestone_kind(key: str) -> MilestoneKind:
    """Return the kind of a slot key."""
    if key == "diagnostica":
        return MilestoneKind.DIAGNOSTIC
    if key in MILESTONE_KEYS and key.startswith("s"):
        return MilestoneKind.SIMULADO
    if key in MILESTONE_KEYS and key.startswith("d"):
        return MilestoneKind.DEVOLUTIVA
    raise ValueError(f"Unknown milestone slot: {key!r}")


def milestone_name(key: str) -> str:
    """Display name of a slot, e.g. ``s2`` -> ``Simulado 2``."""
    kind = milestone_kind(key)
    if kind is MilestoneKind.DIAGNOSTIC:
        return "Avaliação Diagnóstica"
    if kind is MilestoneKind.SIMULADO:
        return f"Simulado {key[1:]}"
    return f"Devolutiva {key[1:]}"


@dataclass
class MilestoneSlot:
    """One scheduled stage of a project.

    The diagnostic evaluation has a single date, kept in ``start``.
    """

    start: datetime | None = None
    end: datetime | None = None
    completed: bool = False
    details: str = ""

    @property
    def scheduled(self) -> bool:
        return self.start is not None


@dataclass
class Project:
    """A municipality's implementation project."""

    id: str
    municipality: str
    region: str = ""
    created_at: datetime | None = None
    slots: dict[str, MilestoneSlot] = field(default_factory=dict)
    implantation_date: datetime | None = None
    migration_date: datetime | None = None

    def __post_init__(self) -> None:
        unknown = set(self.slots) - set(MILESTONE_KEYS)
        if unknown:
            raise ValueError(f"Unknown milestone slots: {sorted(unknown)}")


@dataclass
class Training:
    """A scheduled training session (formação)."""

    id: str
    title: str
    status: TrainingStatus
    municipality: str = ""
    region: str = ""
    start_date: datetime | None = None
    end_date: datetime | None = None
    code: str = ""
    project_id: str = ""


@dataclass
class Task:
    """A follow-up work item (demanda)."""

    id: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.NORMAL
    due_date: datetime | None = None
    project_id: str = ""
    project_name: str = ""
    municipality: str = ""
    region: str = ""
    responsible_id: str = ""
    responsible_name: str = ""
    origin: TaskOrigin = TaskOrigin.MANUAL
    training_id: str = ""
    trigger: TrainingStatus | None = None
    created_at: datetime | None = None

    @property
    def is_urgent(self) -> bool:
        return self.priority == TaskPriority.URGENT

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE


@dataclass(frozen=True)
class ActingUser:
    """The authenticated user commanding a change."""

    uid: str
    name: str = ""
