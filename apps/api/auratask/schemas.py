from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

RoleName = Literal["OWNER", "ADMIN", "MANAGER", "EMPLOYEE"]
TaskStatus = Literal["TO_DO", "IN_PROGRESS", "DONE", "BLOCKED"]
TaskPriority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]


class OrganizationSignUpIn(BaseModel):
  organizationName: str = Field(min_length=1, max_length=255)
  ownerName: str = Field(min_length=1, max_length=255)
  ownerEmail: str = Field(min_length=3, max_length=255)
  identityOrgId: str | None = Field(default=None, max_length=255)
  identitySubject: str | None = Field(default=None, max_length=255)


class OrganizationOut(BaseModel):
  id: str
  name: str
  subscriptionStatus: str
  plan: str
  trialStartDate: datetime
  trialEndDate: datetime
  createdAt: datetime


class TrialStatusOut(BaseModel):
  isActive: bool
  daysRemaining: int
  status: str
  trialEndDate: datetime


class UserOut(BaseModel):
  id: str
  organizationId: str
  name: str
  email: str
  role: RoleName
  tasksCount: int
  createdAt: datetime


class SignUpOut(BaseModel):
  organization: OrganizationOut
  owner: UserOut


class ProfileUpdateIn(BaseModel):
  name: str = Field(min_length=1, max_length=255)


class TaskCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=500)
  description: str = ""
  assigneeId: str | None = None
  dueDate: str = Field(default="", max_length=255)
  priority: TaskPriority | None = None


class TaskUpdateIn(BaseModel):
  title: str | None = Field(default=None, min_length=1, max_length=500)
  description: str | None = None
  assigneeId: str | None = None
  status: TaskStatus | None = None
  priority: TaskPriority | None = None
  dueDate: str | None = Field(default=None, max_length=255)


class TaskOut(BaseModel):
  id: str
  organizationId: str
  title: str
  description: str
  assigneeId: str | None
  status: TaskStatus
  priority: TaskPriority
  dueDate: str
  createdById: str
  createdAt: datetime
  updatedAt: datetime


class CommentCreateIn(BaseModel):
  content: str = Field(min_length=1, max_length=10000)


class CommentOut(BaseModel):
  id: str
  taskId: str
  userId: str
  userName: str
  content: str
  createdAt: datetime


class InviteCreateIn(BaseModel):
  email: str = Field(min_length=3, max_length=255)
  role: str = Field(min_length=1, max_length=16)


class InviteOut(BaseModel):
  id: str
  email: str
  role: RoleName
  organizationId: str
  invitedById: str
  used: bool
  expiresAt: datetime
  createdAt: datetime


class InviteCreatedOut(BaseModel):
  invite: InviteOut
  inviteLink: str


class InviteAcceptIn(BaseModel):
  name: str = Field(min_length=1, max_length=255)
  identitySubject: str | None = Field(default=None, max_length=255)


class PerformanceMetricOut(BaseModel):
  id: str
  userId: str
  organizationId: str
  completionRate: int
  averageTimeDays: int
  tasksCompleted: int
  tasksInProgress: int
  tasksOverdue: int
  lastAIEvaluation: str | None
  evaluationDate: datetime | None
  updatedAt: datetime


class MonitorOut(BaseModel):
  success: bool
  message: str
  evaluated: int
  errors: list[str]


class TaskAssistantIn(BaseModel):
  prompt: str = Field(min_length=1, max_length=8000)


class ProposedTaskOut(BaseModel):
  title: str
  description: str
  assigneeId: str
  dueDate: str
  status: Literal["TO_DO"] = "TO_DO"


class TaskAssistantOut(BaseModel):
  action: Literal["LOG_TASK", "CONVERSATION", "EDIT_TASK"]
  conversationReply: str
  proposedTask: ProposedTaskOut | None = None
