from datetime import datetime, timezone
from itertools import product
from types import MappingProxyType

import pytest

from clinic.core.exceptions import AuthorizationError
from clinic.core.security import Identity, UserRole
from clinic.services.identity import Principal
from clinic.services.policy import (
    POLICY_MATRIX,
    Action,
    Entity,
    PolicyEnforcer,
    Rule,
    assert_matrix_complete,
    owns_resource,
    policy_enforcer,
)

A, D, O = Rule.ALLOW, Rule.DENY, Rule.OWN

# (entity, action) -> admin, secretary, doctor, patient
EXPECTED = {
    (Entity.APPOINTMENT, Action.READ): (A, A, A, O),
    (Entity.APPOINTMENT, Action.CREATE): (A, A, D, O),
    (Entity.APPOINTMENT, Action.UPDATE): (A, A, D, D),
    (Entity.APPOINTMENT, Action.DELETE): (A, A, D, D),
    (Entity.CONSULTATION, Action.READ): (A, A, A, D),
    (Entity.CONSULTATION, Action.CREATE): (A, D, A, D),
    (Entity.CONSULTATION, Action.UPDATE): (A, D, A, D),
    (Entity.CONSULTATION, Action.DELETE): (A, D, D, D),
    (Entity.PRESCRIPTION, Action.READ): (A, A, A, D),
    (Entity.PRESCRIPTION, Action.CREATE): (A, D, A, D),
    (Entity.PRESCRIPTION, Action.UPDATE): (A, D, A, D),
    (Entity.PRESCRIPTION, Action.DELETE): (A, D, D, D),
    (Entity.DOCTOR, Action.READ): (A, A, A, A),
    (Entity.DOCTOR, Action.CREATE): (A, D, D, D),
    (Entity.DOCTOR, Action.UPDATE): (A, D, D, D),
    (Entity.DOCTOR, Action.DELETE): (A, D, D, D),
    (Entity.PATIENT, Action.READ): (A, A, A, O),
    (Entity.PATIENT, Action.CREATE): (A, A, D, D),
    (Entity.PATIENT, Action.UPDATE): (A, A, D, D),
    (Entity.PATIENT, Action.DELETE): (A, A, D, D),
}
ROLES = (UserRole.ADMIN, UserRole.SECRETARY, UserRole.DOCTOR, UserRole.PATIENT)

def make_principal(role, patient_id=None, subject_id=1):
    now = datetime.now(timezone.utc)
    identity = Identity(subject_id=subject_id, role=role, issued_at=now, expires_at=now)
    return Principal(identity=identity, patient_id=patient_id)

class TestMatrix:

    def test_every_cell_has_a_rule(self):
        assert_matrix_complete(POLICY_MATRIX)
        for entity, action, role in product(Entity, Action, UserRole):
            assert isinstance(POLICY_MATRIX[entity][action][role], Rule)

    @pytest.mark.parametrize("key", sorted(EXPECTED, key=lambda k: (k[0].value, k[1].value)))
    def test_rules_match_table(self, key):
        entity, action = key
        for role, expected in zip(ROLES, EXPECTED[key]):
            assert policy_enforcer.rule_for(role, entity, action) is expected

    def test_matrix_is_read_only(self):
        assert isinstance(POLICY_MATRIX, MappingProxyType)
        with pytest.raises(TypeError):
            POLICY_MATRIX[Entity.APPOINTMENT][Action.READ][UserRole.PATIENT] = Rule.ALLOW

    def test_incomplete_matrix_is_rejected(self):
        partial = {
            Entity.APPOINTMENT: {
                Action.READ: {role: Rule.ALLOW for role in UserRole},
            }
        }
        with pytest.raises(RuntimeError) as exc_info:
            PolicyEnforcer(partial)
        assert "appointment/create/admin" in str(exc_info.value)

class TestDecide:

    def test_allow_ignores_ownership(self):
        decision = policy_enforcer.decide(
            make_principal(UserRole.SECRETARY), Entity.APPOINTMENT, Action.UPDATE, resource_owner_id=99
        )
        assert decision.allowed
        assert decision.owner_scope is None

    def test_deny_ignores_ownership(self):
        patient = make_principal(UserRole.PATIENT, patient_id=5)
        decision = policy_enforcer.decide(patient, Entity.APPOINTMENT, Action.UPDATE, resource_owner_id=5)
        assert not decision.allowed
        assert "patient" in decision.reason

    def test_own_rule_on_own_record(self):
        patient = make_principal(UserRole.PATIENT, patient_id=5)
        decision = policy_enforcer.decide(patient, Entity.APPOINTMENT, Action.READ, resource_owner_id=5)
        assert decision.allowed

    def test_own_rule_on_foreign_record(self):
        patient = make_principal(UserRole.PATIENT, patient_id=5)
        decision = policy_enforcer.decide(patient, Entity.APPOINTMENT, Action.READ, resource_owner_id=6)
        assert not decision.allowed

    def test_own_rule_on_collection_scopes_results(self):
        patient = make_principal(UserRole.PATIENT, patient_id=5)
        decision = policy_enforcer.decide(patient, Entity.APPOINTMENT, Action.READ)
        assert decision.allowed
        assert decision.owner_scope == 5

    def test_own_rule_without_patient_profile(self):
        patient = make_principal(UserRole.PATIENT, patient_id=None)
        decision = policy_enforcer.decide(patient, Entity.APPOINTMENT, Action.READ)
        assert not decision.allowed

    def test_authorize_raises_on_deny(self):
        with pytest.raises(AuthorizationError) as exc_info:
            policy_enforcer.authorize(
                make_principal(UserRole.DOCTOR), Entity.APPOINTMENT, Action.CREATE
            )
        assert exc_info.value.status_code == 403

    def test_authorize_returns_decision(self):
        decision = policy_enforcer.authorize(
            make_principal(UserRole.DOCTOR), Entity.CONSULTATION, Action.CREATE
        )
        assert decision.allowed

class TestOwnership:

    class Record:
        def __init__(self, patient_id):
            self.patient_id = patient_id

    def test_owns_record(self):
        principal = make_principal(UserRole.PATIENT, patient_id=5)
        assert owns_resource(principal, self.Record(5))
        assert not owns_resource(principal, self.Record(6))

    def test_owns_bare_id(self):
        principal = make_principal(UserRole.PATIENT, patient_id=5)
        assert owns_resource(principal, 5)

    def test_staff_own_nothing(self):
        assert not owns_resource(make_principal(UserRole.ADMIN), 5)
