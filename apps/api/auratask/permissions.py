"""Role-based access control for tasks, members and invites.

Every predicate is pure: it looks only at the actor and at the facts the caller
passes in. When a rule depends on the assignee's role, the caller resolves that
role first (see ``TaskRef.assignee_role``). Nothing here is cached between
requests; roles and assignments can change from one call to the next.

OWNER and ADMIN share one capability set. MANAGER coordinates EMPLOYEE work but
cannot see or edit other managers' workloads. EMPLOYEE only moves the status of
(and comments on) tasks assigned to them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from auratask.errors import Forbidden, InvalidAssignment, ValidationError


class Role(str, Enum):
  OWNER = "OWNER"
  ADMIN = "ADMIN"
  MANAGER = "MANAGER"
  EMPLOYEE = "EMPLOYEE"

  @classmethod
  def parse(cls, value: str | Role | None) -> Role | None:
    if value is None:
      return None
    if isinstance(value, Role):
      return value
    return cls(str(value).strip().upper())


class Capability(str, Enum):
  VIEW_ALL_TASKS = "tasks.view_all"
  VIEW_TEAM_TASKS = "tasks.view_team"
  CREATE_TASKS = "tasks.create"
  ASSIGN_ANYONE = "tasks.assign_anyone"
  ASSIGN_TEAM = "tasks.assign_team"
  EDIT_ANY_TASK = "tasks.edit_any"
  EDIT_TEAM_TASKS = "tasks.edit_team"
  CHANGE_ANY_STATUS = "tasks.status_any"
  DELETE_ANY_TASK = "tasks.delete_any"
  DELETE_OWN_TASKS = "tasks.delete_own"
  COMMENT_ANY_TASK = "tasks.comment_any"
  VIEW_ALL_MEMBERS = "members.view_all"
  VIEW_TEAM_MEMBERS = "members.view_team"
  INVITE_EMPLOYEES = "invites.employees"
  INVITE_MANAGERS = "invites.managers"
  MONITOR_PERFORMANCE = "performance.monitor"


_ADMIN_CAPABILITIES = frozenset(
  {
    Capability.VIEW_ALL_TASKS,
    Capability.CREATE_TASKS,
    Capability.ASSIGN_ANYONE,
    Capability.EDIT_ANY_TASK,
    Capability.CHANGE_ANY_STATUS,
    Capability.DELETE_ANY_TASK,
    Capability.COMMENT_ANY_TASK,
    Capability.VIEW_ALL_MEMBERS,
    Capability.INVITE_EMPLOYEES,
    Capability.INVITE_MANAGERS,
    Capability.MONITOR_PERFORMANCE,
  }
)

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
  Role.OWNER: _ADMIN_CAPABILITIES,
  Role.ADMIN: _ADMIN_CAPABILITIES,
  Role.MANAGER: frozenset(
    {
      Capability.VIEW_TEAM_TASKS,
      Capability.CREATE_TASKS,
      Capability.ASSIGN_TEAM,
      Capability.EDIT_TEAM_TASKS,
      Capability.CHANGE_ANY_STATUS,
      Capability.DELETE_OWN_TASKS,
      Capability.COMMENT_ANY_TASK,
      Capability.VIEW_TEAM_MEMBERS,
      Capability.INVITE_EMPLOYEES,
      Capability.MONITOR_PERFORMANCE,
    }
  ),
  Role.EMPLOYEE: frozenset(),
}


@dataclass(frozen=True)
class Actor:
  id: str
  organization_id: str
  role: Role
  name: str = ""
  email: str = ""
  capabilities: frozenset[Capability] = field(init=False, repr=False)

  def __post_init__(self) -> None:
    object.__setattr__(self, "role", Role.parse(self.role))
    object.__setattr__(self, "capabilities", ROLE_CAPABILITIES[self.role])

  def can(self, capability: Capability) -> bool:
    return capability in self.capabilities


@dataclass(frozen=True)
class TaskRef:
  """The facts about a task that authorization depends on."""

  assignee_id: str | None
  created_by_id: str
  assignee_role: Role | None = None


def _is_team_target(actor: Actor, user_id: str | None, role: Role | None) -> bool:
  return user_id == actor.id or role == Role.EMPLOYEE


def can_view_task(actor: Actor, task: TaskRef) -> bool:
  if actor.can(Capability.VIEW_ALL_TASKS):
    return True
  if actor.can(Capability.VIEW_TEAM_TASKS):
    if task.assignee_id is None or task.created_by_id == actor.id:
      return True
    return _is_team_target(actor, task.assignee_id, task.assignee_role)
  return task.assignee_id == actor.id


def can_create_task(actor: Actor, assignee_id: str | None = None, assignee_role: Role | None = None) -> bool:
  if not actor.can(Capability.CREATE_TASKS):
    return False
  return can_assign_to(actor, assignee_id, assignee_role)


def can_assign_to(actor: Actor, assignee_id: str | None, assignee_role: Role | None) -> bool:
  if actor.can(Capability.ASSIGN_ANYONE):
    return True
  if actor.can(Capability.ASSIGN_TEAM):
    return assignee_id is None or _is_team_target(actor, assignee_id, assignee_role)
  return False


def can_edit_task(actor: Actor, task: TaskRef) -> bool:
  if actor.can(Capability.EDIT_ANY_TASK):
    return True
  if actor.can(Capability.EDIT_TEAM_TASKS):
    return task.created_by_id == actor.id or task.assignee_role == Role.EMPLOYEE
  return False


def can_change_status(actor: Actor, task: TaskRef) -> bool:
  if actor.can(Capability.CHANGE_ANY_STATUS):
    return True
  return task.assignee_id is not None and task.assignee_id == actor.id


def can_reassign(actor: Actor, new_assignee_id: str | None = None, new_assignee_role: Role | None = None) -> bool:
  return can_assign_to(actor, new_assignee_id, new_assignee_role)


def can_delete_task(actor: Actor, task: TaskRef) -> bool:
  if actor.can(Capability.DELETE_ANY_TASK):
    return True
  if actor.can(Capability.DELETE_OWN_TASKS):
    return task.created_by_id == actor.id
  return False


def can_comment(actor: Actor, task: TaskRef) -> bool:
  if actor.can(Capability.COMMENT_ANY_TASK):
    return True
  return task.assignee_id is not None and task.assignee_id == actor.id


def can_view_member(actor: Actor, member_id: str, member_role: Role) -> bool:
  if actor.can(Capability.VIEW_ALL_MEMBERS):
    return True
  if actor.can(Capability.VIEW_TEAM_MEMBERS):
    return _is_team_target(actor, member_id, member_role)
  return member_id == actor.id


def can_invite(actor: Actor, target_role: Role) -> bool:
  if target_role == Role.EMPLOYEE:
    return actor.can(Capability.INVITE_EMPLOYEES)
  if target_role == Role.MANAGER:
    return actor.can(Capability.INVITE_MANAGERS)
  return False


def can_view_invites(actor: Actor) -> bool:
  return actor.can(Capability.INVITE_EMPLOYEES)


def can_monitor_performance(actor: Actor) -> bool:
  return actor.can(Capability.MONITOR_PERFORMANCE)


def require_view_task(actor: Actor, task: TaskRef) -> None:
  if not can_view_task(actor, task):
    raise Forbidden("view task", "task is outside your visible workload")


def require_create_task(actor: Actor, assignee_id: str | None, assignee_role: Role | None) -> None:
  if not actor.can(Capability.CREATE_TASKS):
    raise Forbidden("create task", "only owners, admins and managers create tasks")
  if not can_assign_to(actor, assignee_id, assignee_role):
    raise InvalidAssignment("Managers can only assign tasks to employees or themselves")


def require_change_status(actor: Actor, task: TaskRef) -> None:
  if not can_change_status(actor, task):
    raise Forbidden("change task status", "employees may only move tasks assigned to them")


def require_reassign(actor: Actor, new_assignee_id: str | None, new_assignee_role: Role | None) -> None:
  if not (actor.can(Capability.ASSIGN_ANYONE) or actor.can(Capability.ASSIGN_TEAM)):
    raise Forbidden("reassign task", "employees cannot reassign tasks")
  if not can_reassign(actor, new_assignee_id, new_assignee_role):
    raise InvalidAssignment("Managers can only reassign tasks to employees or themselves")


def require_edit_task(actor: Actor, task: TaskRef) -> None:
  if actor.role == Role.EMPLOYEE:
    raise Forbidden("edit task", "employees may only update the status of their tasks")
  if not can_edit_task(actor, task):
    raise Forbidden("edit task", "managers may only edit tasks they created or tasks assigned to employees")


def require_delete_task(actor: Actor, task: TaskRef) -> None:
  if not can_delete_task(actor, task):
    raise Forbidden("delete task", "only the task creator or an admin may delete it")


def require_comment(actor: Actor, task: TaskRef) -> None:
  if not can_comment(actor, task):
    raise Forbidden("comment on task", "employees may only comment on tasks assigned to them")


def require_invite(actor: Actor, target_role: Role) -> None:
  if target_role not in (Role.MANAGER, Role.EMPLOYEE):
    raise ValidationError("Invites may only target the MANAGER or EMPLOYEE role")
  if not can_invite(actor, target_role):
    if target_role == Role.MANAGER:
      raise Forbidden("invite member", "only owners and admins invite managers")
    raise Forbidden("invite member", "employees cannot invite members")


def require_view_invites(actor: Actor) -> None:
  if not can_view_invites(actor):
    raise Forbidden("view invites", "employees cannot view invites")


def require_monitor_performance(actor: Actor) -> None:
  if not can_monitor_performance(actor):
    raise Forbidden("monitor performance", "only owners, admins and managers monitor performance")
