# Overview: Pytest coverage for approval routing and the RoleSet value type.

"""
Approval Routing Tests

Pure-function tests; no database. Cover the first-match rule table, the
solo-control signal and role/tier validation.
"""

import itertools

import pytest

from salonpos.models import ApprovalLevel
from salonpos.roles import InvalidRoleError, PermissionTier, Role, RoleSet
from salonpos.services.approval_routing import (
    REASON_RECEPTIONIST_SOLO,
    REASON_STANDARD,
    REASON_SUPERVISOR_SOLO,
    TicketSnapshot,
    route,
)


CLOSER = 1
OTHER = 2
THIRD = 3


def _snapshot(roles, performers, closer=CLOSER):
    return TicketSnapshot.build(
        ticket_id=100,
        closed_by=closer,
        closer_roles=RoleSet.of(roles),
        item_employee_ids=performers,
    )


class TestRoleSet:
    def test_roles_are_concurrent(self):
        roles = RoleSet.of([Role.TECHNICIAN, Role.RECEPTIONIST])
        assert roles.has(Role.TECHNICIAN)
        assert roles.has(Role.TECHNICIAN, Role.RECEPTIONIST)
        assert not roles.has(Role.TECHNICIAN, Role.SUPERVISOR)

    def test_unknown_role_rejected(self):
        with pytest.raises(InvalidRoleError):
            RoleSet.of(["Barista"])

    def test_unknown_tier_rejected(self):
        with pytest.raises(InvalidRoleError):
            RoleSet.of([Role.TECHNICIAN], "Superuser")

    def test_hierarchy_helpers(self):
        assert RoleSet.of([Role.SUPERVISOR]).is_supervisor_or_higher
        assert not RoleSet.of([Role.SUPERVISOR]).is_management
        assert RoleSet.of([Role.OWNER]).is_management
        assert RoleSet.of([Role.OWNER]).is_admin
        assert RoleSet.of([Role.RECEPTIONIST], PermissionTier.ADMIN).is_admin
        assert not RoleSet.of([Role.MANAGER]).is_admin

    def test_service_roles(self):
        assert RoleSet.of([Role.SPA_EXPERT]).performs_services
        assert RoleSet.of([Role.SUPERVISOR]).performs_services
        assert not RoleSet.of([Role.RECEPTIONIST]).performs_services

    def test_to_list_is_canonical(self):
        roles = RoleSet.of([Role.OWNER, Role.RECEPTIONIST, Role.TECHNICIAN])
        assert roles.to_list() == [Role.TECHNICIAN, Role.RECEPTIONIST, Role.OWNER]


class TestTicketSnapshot:
    def test_performers_are_distinct(self):
        snap = _snapshot([Role.TECHNICIAN], [CLOSER, CLOSER, CLOSER])
        assert snap.performer_count == 1
        assert snap.solo_control

    def test_closer_not_performer(self):
        snap = _snapshot([Role.RECEPTIONIST], [OTHER])
        assert not snap.closer_is_performer
        assert not snap.solo_control

    def test_shared_work_is_not_solo(self):
        snap = _snapshot([Role.SUPERVISOR], [CLOSER, OTHER])
        assert snap.closer_is_performer
        assert not snap.solo_control

    def test_no_items_is_not_solo(self):
        assert not _snapshot([Role.SUPERVISOR], []).solo_control


class TestRoute:
    @pytest.mark.parametrize("roles, performers, level, higher", [
        # receptionist closes a technician's ticket
        ([Role.RECEPTIONIST], [OTHER], ApprovalLevel.TECHNICIAN, False),
        # supervisor performs and closes alone
        ([Role.SUPERVISOR], [CLOSER], ApprovalLevel.MANAGER, True),
        # supervisor closes someone else's work
        ([Role.SUPERVISOR], [OTHER], ApprovalLevel.TECHNICIAN, False),
        ([Role.SUPERVISOR], [CLOSER, OTHER], ApprovalLevel.TECHNICIAN, False),
        ([Role.RECEPTIONIST, Role.TECHNICIAN], [CLOSER], ApprovalLevel.SUPERVISOR, True),
        ([Role.RECEPTIONIST, Role.SPA_EXPERT], [CLOSER], ApprovalLevel.SUPERVISOR, True),
        ([Role.RECEPTIONIST, Role.TECHNICIAN], [CLOSER, OTHER], ApprovalLevel.TECHNICIAN, False),
        ([Role.TECHNICIAN], [CLOSER], ApprovalLevel.TECHNICIAN, False),
        ([Role.RECEPTIONIST], [CLOSER], ApprovalLevel.TECHNICIAN, False),
        ([Role.MANAGER], [CLOSER], ApprovalLevel.TECHNICIAN, False),
    ])
    def test_rule_table(self, roles, performers, level, higher):
        decision = route(_snapshot(roles, performers))
        assert decision.level == level
        assert decision.requires_higher is higher

    def test_supervisor_rule_wins_over_receptionist_rule(self):
        decision = route(_snapshot([Role.SUPERVISOR, Role.RECEPTIONIST, Role.TECHNICIAN], [CLOSER]))
        assert decision.level == ApprovalLevel.MANAGER
        assert decision.reason == REASON_SUPERVISOR_SOLO

    def test_technician_receptionist_goes_to_supervisor(self):
        decision = route(_snapshot([Role.TECHNICIAN, Role.RECEPTIONIST], [CLOSER]))
        assert decision.reason == REASON_RECEPTIONIST_SOLO

    def test_dual_role_closer_matches_receptionist_rule(self):
        extras = [Role.SPA_EXPERT, Role.MANAGER, Role.OWNER]
        for size in range(len(extras) + 1):
            for combo in itertools.combinations(extras, size):
                roles = [Role.TECHNICIAN, Role.RECEPTIONIST, *combo]
                decision = route(_snapshot(roles, [CLOSER]))
                assert decision.reason == REASON_RECEPTIONIST_SOLO, roles
                assert decision.level == ApprovalLevel.SUPERVISOR

    def test_standard_reason(self):
        decision = route(_snapshot([Role.RECEPTIONIST], [OTHER]))
        assert decision.reason == REASON_STANDARD
        assert decision.performed_and_closed_by_same_person is False

    def test_same_person_flag_follows_solo_control(self):
        decision = route(_snapshot([Role.TECHNICIAN], [CLOSER]))
        assert decision.performed_and_closed_by_same_person is True
        assert decision.requires_higher is False

    def test_multiple_performers_never_escalate(self):
        role_combos = [
            list(combo)
            for size in (1, 2, 3)
            for combo in itertools.combinations(
                [Role.TECHNICIAN, Role.SPA_EXPERT, Role.RECEPTIONIST, Role.SUPERVISOR, Role.MANAGER], size
            )
        ]
        performer_sets = [[CLOSER, OTHER], [OTHER, THIRD], [CLOSER, OTHER, THIRD]]
        for roles in role_combos:
            for performers in performer_sets:
                decision = route(_snapshot(roles, performers))
                assert decision.requires_higher is False, (roles, performers)
                assert decision.level == ApprovalLevel.TECHNICIAN

    def test_decision_dict_matches_ticket_columns(self):
        decision = route(_snapshot([Role.SUPERVISOR], [CLOSER]))
        assert decision.to_dict() == {
            "approval_required_level": ApprovalLevel.MANAGER,
            "approval_reason": REASON_SUPERVISOR_SOLO,
            "requires_higher_approval": True,
            "performed_and_closed_by_same_person": True,
        }
