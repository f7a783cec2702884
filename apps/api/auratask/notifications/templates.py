from __future__ import annotations

from html import escape

from auratask.config import settings
from auratask.notifications.service import OutboundEmail

STATUS_MESSAGES = {
  "TO_DO": "Task has been created",
  "IN_PROGRESS": "Task is now in progress",
  "DONE": "Task has been completed!",
  "BLOCKED": "Task has been blocked",
}

ROLE_LABELS = {
  "OWNER": "Owner",
  "ADMIN": "Administrator",
  "MANAGER": "Manager",
  "EMPLOYEE": "Employee",
}


def _dashboard_url() -> str:
  return f"{settings.app_url.rstrip('/')}/dashboard"


def _page(heading: str, subheading: str, body: str) -> str:
  return (
    "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333;\">"
    "<div style=\"max-width: 600px; margin: 0 auto; padding: 20px;\">"
    f"<h1>{escape(heading)}</h1><p>{escape(subheading)}</p>"
    f"{body}"
    "</div></body></html>"
  )


def task_assigned_email(*, to_email: str, to_name: str, task_title: str, assigned_by: str, due_date: str = "", priority: str = "") -> OutboundEmail:
  details = f"<p><strong>Assigned by:</strong> {escape(assigned_by)}</p>"
  if priority:
    details += f"<p><strong>Priority:</strong> {escape(priority)}</p>"
  if due_date:
    details += f"<p><strong>Due:</strong> {escape(due_date)}</p>"
  body = (
    f"<p>Hello {escape(to_name)},</p>"
    f"<p>A task has been assigned to you: <strong>{escape(task_title)}</strong></p>"
    f"{details}"
    f"<p><a href=\"{escape(_dashboard_url())}\">View Dashboard</a></p>"
  )
  return OutboundEmail(
    to_email=to_email,
    to_name=to_name,
    subject=f"New Task Assigned: {task_title}",
    html=_page("New Task", "You have a new assignment", body),
    tags=("task-assigned",),
  )


def task_progress_email(
  *,
  to_email: str,
  to_name: str,
  task_title: str,
  employee_name: str,
  employee_email: str,
  old_status: str,
  new_status: str,
) -> OutboundEmail:
  status_message = STATUS_MESSAGES.get(new_status, "Task status has been updated")
  heading = "Task Completed!" if new_status == "DONE" else "Task Update"
  body = (
    f"<p>Hello {escape(to_name)},</p>"
    "<p>The task you assigned has been updated:</p>"
    f"<h2>{escape(task_title)}</h2>"
    f"<p><strong>Assigned to:</strong> {escape(employee_name)} ({escape(employee_email)})</p>"
    f"<p><strong>Previous Status:</strong> {escape(old_status)}</p>"
    f"<p><strong>New Status:</strong> {escape(new_status)}</p>"
    f"<p><a href=\"{escape(_dashboard_url())}\">View Dashboard</a></p>"
  )
  return OutboundEmail(
    to_email=to_email,
    to_name=to_name,
    subject=f"Task Update: {task_title} - {status_message}",
    html=_page(heading, status_message, body),
    tags=("task-progress",),
  )


def invite_email(*, to_email: str, role: str, invite_link: str, organization_name: str, invited_by: str) -> OutboundEmail:
  to_name = to_email.split("@", 1)[0]
  role_label = ROLE_LABELS.get(role, role.title())
  body = (
    f"<p>Hello {escape(to_name)},</p>"
    f"<p><strong>{escape(invited_by)}</strong> has invited you to join <strong>{escape(organization_name)}</strong> on AuraTask.</p>"
    f"<p>Your role will be: <strong>{escape(role_label)}</strong></p>"
    f"<p><a href=\"{escape(invite_link)}\">Accept Invitation</a></p>"
    f"<p style=\"font-size: 12px; color: #666;\">This invitation link will expire in {settings.invite_ttl_days} days. "
    "If you didn't expect this invitation, you can safely ignore this email.</p>"
    f"<p style=\"font-size: 12px; color: #666;\">Or copy and paste this link: {escape(invite_link)}</p>"
  )
  return OutboundEmail(
    to_email=to_email,
    to_name=to_name,
    subject=f"You've been invited to join {organization_name} on AuraTask",
    html=_page("AuraTask", "You've been invited!", body),
    tags=("invite",),
  )


def welcome_email(*, to_email: str, to_name: str, organization_name: str, role: str) -> OutboundEmail:
  role_label = ROLE_LABELS.get(role, role.title())
  body = (
    f"<p>Hello {escape(to_name)},</p>"
    f"<p>You joined <strong>{escape(organization_name)}</strong> as {escape(role_label)}.</p>"
    f"<p><a href=\"{escape(_dashboard_url())}\">Open your dashboard</a></p>"
  )
  return OutboundEmail(
    to_email=to_email,
    to_name=to_name,
    subject=f"Welcome to {organization_name} on AuraTask",
    html=_page("Welcome to AuraTask", "Your account is ready", body),
    tags=("welcome",),
  )
