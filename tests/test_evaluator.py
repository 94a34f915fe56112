import itertools

import pytest

from helpdesk.access.domain import AccessContext, Action, Principal, RoleAssignment, evaluator
from helpdesk.config import OverrideEffect, RoleName
from helpdesk.core import AuthorizationException

TECH = "sector-tech"
DP = "sector-dp"
RESOURCE = "resource-1"


def principal(*roles, user_id="u-1", overrides=None):
    return Principal(
        user_id=user_id,
        roles=tuple(RoleAssignment(sector_id=s, role=r) for s, r in roles),
        overrides=overrides or {},
    )


def ticket_context(creator_id="someone-else"):
    return AccessContext(requester_sector_id=DP, target_sector_id=TECH, creator_id=creator_id)


PRINCIPALS = [
    None,
    principal(),
    principal((DP, RoleName.USER)),
    principal((TECH, RoleName.COORDINATOR)),
    principal((DP, RoleName.ADMIN)),
]
CONTEXTS = [
    None,
    AccessContext(),
    ticket_context(),
    ticket_context(creator_id="u-1"),
    AccessContext(resource_id=RESOURCE, resource_sector_id=DP),
]


@pytest.mark.parametrize("who, action, context", list(itertools.product(PRINCIPALS, list(Action), CONTEXTS)))
def test_every_question_gets_a_boolean(who, action, context):
    assert evaluator.can_act(who, action, context) in (True, False)


@pytest.mark.parametrize("action", list(Action))
def test_admin_of_any_sector_is_global_admin(action):
    admin = principal((DP, RoleName.ADMIN))
    assert evaluator.can_act(admin, action, ticket_context())
    assert evaluator.can_act(admin, action, AccessContext(resource_id=RESOURCE))


def test_requester_user_cannot_manage():
    user = principal((DP, RoleName.USER))
    with pytest.raises(AuthorizationException) as exc_info:
        evaluator.ensure(user, Action.TICKET_MANAGE, ticket_context())
    assert exc_info.value.action == Action.TICKET_MANAGE.value


def test_requester_sector_members_read_and_comment():
    user = principal((DP, RoleName.USER))
    assert evaluator.can_act(user, Action.TICKET_READ, ticket_context())
    assert evaluator.can_act(user, Action.TICKET_COMMENT, ticket_context())
    assert not evaluator.can_act(user, Action.TICKET_COMMENT_INTERNAL, ticket_context())
    assert not evaluator.can_act(user, Action.SLA_OVERRIDE, ticket_context())


def test_creator_keeps_access_without_membership():
    creator = principal()
    assert evaluator.can_act(creator, Action.TICKET_READ, ticket_context(creator_id="u-1"))
    assert not evaluator.can_act(creator, Action.TICKET_READ, ticket_context())


def test_target_sector_coordinator_manages():
    coordinator = principal((TECH, RoleName.COORDINATOR))
    for action in (Action.TICKET_MANAGE, Action.SLA_OVERRIDE, Action.TICKET_COMMENT_INTERNAL, Action.TICKET_READ):
        assert evaluator.can_act(coordinator, action, ticket_context())
    # Staff of the requester side is not staff of the target side
    assert not evaluator.can_act(principal((DP, RoleName.COORDINATOR)), Action.TICKET_MANAGE, ticket_context())


def test_highest_role_wins_regardless_of_row_order():
    mixed = principal((TECH, RoleName.USER), (TECH, RoleName.COORDINATOR))
    reversed_rows = principal((TECH, RoleName.COORDINATOR), (TECH, RoleName.USER))
    assert mixed.effective_role(TECH) == RoleName.COORDINATOR
    assert evaluator.can_act(mixed, Action.TICKET_MANAGE, ticket_context())
    assert evaluator.can_act(reversed_rows, Action.TICKET_MANAGE, ticket_context())


def test_create_requires_requester_membership():
    user = principal((DP, RoleName.USER))
    assert evaluator.can_act(user, Action.TICKET_CREATE, AccessContext(requester_sector_id=DP))
    assert not evaluator.can_act(user, Action.TICKET_CREATE, AccessContext(requester_sector_id=TECH))


def test_resource_override_decides_before_role_defaults():
    member = principal((DP, RoleName.USER), overrides={RESOURCE: OverrideEffect.DENY})
    outsider = principal(overrides={RESOURCE: OverrideEffect.ALLOW})
    context = AccessContext(resource_id=RESOURCE, resource_sector_id=DP)

    assert not evaluator.can_act(member, Action.RESOURCE_VIEW, context)
    assert evaluator.can_act(outsider, Action.RESOURCE_VIEW, context)
    assert evaluator.can_act(principal((DP, RoleName.USER)), Action.RESOURCE_VIEW, context)


def test_reports_need_helpdesk_staff():
    context = AccessContext(target_sector_id=TECH)
    assert evaluator.can_act(principal((TECH, RoleName.COORDINATOR)), Action.REPORT_VIEW, context)
    assert not evaluator.can_act(principal((TECH, RoleName.USER)), Action.REPORT_VIEW, context)
    assert not evaluator.can_act(principal((DP, RoleName.COORDINATOR)), Action.REPORT_VIEW, context)


def test_admin_actions_have_no_role_default():
    coordinator = principal((TECH, RoleName.COORDINATOR))
    assert not evaluator.can_act(coordinator, Action.ADMIN_MANAGE, AccessContext())


def test_anonymous_is_denied():
    assert not evaluator.can_act(None, Action.TICKET_READ, ticket_context())
    with pytest.raises(AuthorizationException):
        evaluator.ensure(None, Action.TICKET_READ)
