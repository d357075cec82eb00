"""
Cycle de vie d'un rendez-vous : table unique des transitions de statut.

Toutes les mutations de statut (transitions granulaires et changement manuel
via PATCH /status) passent par `ensure_transition`.

    Pending ──► Confirmed ──► In-Progress ──► Completed
       │            │               └───────► No-Show
       │            └─────────────────────────► Completed
       ├──► Rescheduled ──► Confirmed / Pending
       └──► Cancelled (depuis tout statut non terminal)

"Rescheduled" reste un statut distinct (traçable) mais se comporte comme
"Pending" : il peut être confirmé, annulé, reprogrammé ou remis en attente.
"""

from counseling.errors import InvalidTransitionError

PENDING = "Pending"
CONFIRMED = "Confirmed"
IN_PROGRESS = "In-Progress"
COMPLETED = "Completed"
CANCELLED = "Cancelled"
NO_SHOW = "No-Show"
RESCHEDULED = "Rescheduled"

STATUSES = (PENDING, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED, NO_SHOW, RESCHEDULED)

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({CONFIRMED, CANCELLED, RESCHEDULED}),
    RESCHEDULED: frozenset({CONFIRMED, CANCELLED, RESCHEDULED, PENDING}),
    CONFIRMED: frozenset({IN_PROGRESS, COMPLETED, CANCELLED, RESCHEDULED}),
    IN_PROGRESS: frozenset({COMPLETED, NO_SHOW, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
    NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# Statuts « en attente de confirmation » : pas de date confirmée
AWAITING_CONFIRMATION = frozenset({PENDING, RESCHEDULED})

# Cibles autorisées pour le changement manuel de statut (PATCH /status)
MANUAL_TARGETS = (PENDING, CONFIRMED, COMPLETED, CANCELLED)


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    """Lève InvalidTransitionError si `current → target` n'est pas dans la table."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES
