"""Role/ownership authorization for clinical records.

Every decision comes from one lookup table, ``POLICY_MATRIX``, keyed by
entity, action and role. Each cell holds one of three rules:

* ``ALLOW`` - the role may act on any record.
* ``DENY``  - the role may never act, whatever it owns.
* ``OWN``   - the role may act only on records whose ``patient_id`` is the
  caller's own resolved Patient id.

The table is frozen and checked for completeness when the enforcer is built,
so adding an entity, action or role without filling every cell fails at
import time instead of silently allowing or denying.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from itertools import product
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..core.exceptions import AuthorizationError
from ..core.security import UserRole
from .identity import Principal

logger = logging.getLogger(__name__)


class Entity(str, Enum):
    APPOINTMENT = "appointment"
    CONSULTATION = "consultation"
    PRESCRIPTION = "prescription"
    DOCTOR = "doctor"
    PATIENT = "patient"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Rule(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    OWN = "own"


A, D, O = Rule.ALLOW, Rule.DENY, Rule.OWN

PolicyMatrix = Mapping[Entity, Mapping[Action, Mapping[UserRole, Rule]]]


def _freeze(table) -> PolicyMatrix:
    return MappingProxyType({
        entity: MappingProxyType({
            action: MappingProxyType(dict(cells))
            for action, cells in actions.items()
        })
        for entity, actions in table.items()
    })


def _row(admin: Rule, secretary: Rule, doctor: Rule, patient: Rule):
    return {
        UserRole.ADMIN: admin,
        UserRole.SECRETARY: secretary,
        UserRole.DOCTOR: doctor,
        UserRole.PATIENT: patient,
    }


#                                    admin secretary doctor patient
POLICY_MATRIX: PolicyMatrix = _freeze({
    Entity.APPOINTMENT: {
        Action.READ:   _row(A, A, A, O),
        Action.CREATE: _row(A, A, D, O),
        Action.UPDATE: _row(A, A, D, D),
        Action.DELETE: _row(A, A, D, D),
    },
    Entity.CONSULTATION: {
        Action.READ:   _row(A, A, A, D),
        Action.CREATE: _row(A, D, A, D),
        Action.UPDATE: _row(A, D, A, D),
        Action.DELETE: _row(A, D, D, D),
    },
    Entity.PRESCRIPTION: {
        Action.READ:   _row(A, A, A, D),
        Action.CREATE: _row(A, D, A, D),
        Action.UPDATE: _row(A, D, A, D),
        Action.DELETE: _row(A, D, D, D),
    },
    # The API exposes profile reads only
    Entity.DOCTOR: {
        Action.READ:   _row(A, A, A, A),
        Action.CREATE: _row(A, D, D, D),
        Action.UPDATE: _row(A, D, D, D),
        Action.DELETE: _row(A, D, D, D),
    },
    Entity.PATIENT: {
        Action.READ:   _row(A, A, A, O),
        Action.CREATE: _row(A, A, D, D),
        Action.UPDATE: _row(A, A, D, D),
        Action.DELETE: _row(A, A, D, D),
    },
})


def assert_matrix_complete(matrix: PolicyMatrix) -> None:
    """Raise RuntimeError unless every (entity, action, role) has a Rule."""
    missing = []
    for entity, action, role in product(Entity, Action, UserRole):
        rule = matrix.get(entity, {}).get(action, {}).get(role)
        if not isinstance(rule, Rule):
            missing.append(f"{entity.value}/{action.value}/{role.value}")
    if missing:
        raise RuntimeError(f"Policy matrix is incomplete: {', '.join(missing)}")


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""
    # Set when an OWN rule applies to a collection: results must be
    # restricted to this patient id
    owner_scope: Optional[int] = None


def owns_resource(principal: Principal, resource: Any) -> bool:
    """True when ``resource`` (a record or a bare patient id) belongs to the caller."""
    owner_id = getattr(resource, "patient_id", resource)
    return principal.patient_id is not None and owner_id == principal.patient_id


class PolicyEnforcer:
    def __init__(self, matrix: PolicyMatrix = POLICY_MATRIX):
        assert_matrix_complete(matrix)
        self.matrix = matrix

    def rule_for(self, role: UserRole, entity: Entity, action: Action) -> Rule:
        return self.matrix[entity][action][role]

    def decide(
        self,
        principal: Principal,
        entity: Entity,
        action: Action,
        resource_owner_id: Optional[int] = None,
    ) -> Decision:
        """Decide whether ``principal`` may perform ``action`` on ``entity``.

        ``resource_owner_id`` is the patient id of the targeted record. Leave
        it out for collection reads, where an OWN rule yields an allowed
        decision carrying ``owner_scope``.
        """
        role = principal.role
        rule = self.rule_for(role, entity, action)

        if rule is Rule.ALLOW:
            return Decision(allowed=True)

        if rule is Rule.DENY:
            return Decision(
                allowed=False,
                reason=f"Access denied. Role '{role.value}' cannot {action.value} {entity.value}s",
            )

        if principal.patient_id is None:
            return Decision(allowed=False, reason="No patient profile is linked to this account")
        if resource_owner_id is None:
            return Decision(allowed=True, owner_scope=principal.patient_id)
        if owns_resource(principal, resource_owner_id):
            return Decision(allowed=True, owner_scope=principal.patient_id)
        return Decision(
            allowed=False,
            reason=f"Access denied. Patients can only {action.value} their own {entity.value}s",
        )

    def authorize(
        self,
        principal: Principal,
        entity: Entity,
        action: Action,
        resource_owner_id: Optional[int] = None,
    ) -> Decision:
        """Same as decide() but raises AuthorizationError on a deny."""
        decision = self.decide(principal, entity, action, resource_owner_id)
        if not decision.allowed:
            logger.warning(
                f"Denied {action.value} on {entity.value} for user {principal.subject_id} "
                f"({principal.role.value})"
            )
            raise AuthorizationError(decision.reason)
        return decision


policy_enforcer = PolicyEnforcer()
