"""Task domain events (notification side effects)."""
from typing import Iterable, Optional

from officedesk.models.task import Task
from officedesk.models.user import User
from officedesk.services.email import task_assignment_email, task_event_email
from officedesk.services.notifications import NotificationDispatcher, task_reference


def _others(user_ids: Iterable[str], actor: User):
    return [uid for uid in dict.fromkeys(user_ids) if uid and uid != actor.id]


def notify_task_assigned(
    dispatcher: NotificationDispatcher,
    task: Task,
    actor: User,
    assignee_ids: Iterable[str],
    note: Optional[str] = None,
) -> None:
    """Tell newly added assignees about the task, in-app and by e-mail."""
    content = f"{actor.name} assigned you a task: {task.title}"
    if note:
        content += f" - Note: {note}"
    content += f" {task_reference(task.id)}"

    dispatcher.notify_many(
        _others(assignee_ids, actor),
        "New Task Assigned",
        content,
        sender_id=actor.id,
        task_id=task.id,
        email_subject=f"Task Assigned: {task.title}",
        email_html=task_assignment_email(task.title, actor.name, note, task.due_date),
    )


def notify_task_unassigned(dispatcher: NotificationDispatcher, task: Task, actor: User, user_ids: Iterable[str]) -> None:
    """Tell removed assignees the task went elsewhere. No e-mail."""
    dispatcher.notify_many(
        _others(user_ids, actor),
        "Task Reassigned",
        f'Your task "{task.title}" has been reassigned to another user',
        sender_id=actor.id,
    )


def notify_admins_task_created(dispatcher: NotificationDispatcher, task: Task, actor: User) -> None:
    dispatcher.notify_admins(
        "New Task Created",
        f"{actor.name} created a new task: {task.title} {task_reference(task.id)}",
        exclude=[actor.id],
        sender_id=actor.id,
        task_id=task.id,
        email_subject=f"New Task Created: {task.title}",
        email_html=task_event_email("New Task Created", task.title, "Created by", actor.name),
    )


def notify_admins_task_updated(dispatcher: NotificationDispatcher, task: Task, actor: User) -> None:
    dispatcher.notify_admins(
        "Task Updated",
        f"{actor.name} updated task: {task.title} {task_reference(task.id)}",
        exclude=[actor.id],
        sender_id=actor.id,
        task_id=task.id,
        email_subject=f"Task Updated: {task.title}",
        email_html=task_event_email("Task Updated", task.title, "Updated by", actor.name),
    )


def notify_status_changed(
    dispatcher: NotificationDispatcher,
    task: Task,
    actor: User,
    old_status: str,
    new_status: str,
) -> None:
    """Tell the task's creator about a status change they did not make."""
    if task.assigned_by_id == actor.id:
        return
    dispatcher.notify(
        task.assigned_by_id,
        "Task Status Updated",
        f'{actor.name} changed task "{task.title}" status from {old_status} to {new_status} '
        f"{task_reference(task.id)}",
        sender_id=actor.id,
        task_id=task.id,
        email_subject=f"Task Status Update: {task.title}",
        email_html=task_event_email(
            "Task Status Updated", task.title, "Updated by", actor.name,
            extra=f"Status change: {old_status} -> {new_status}",
        ),
    )


def notify_comment_added(
    dispatcher: NotificationDispatcher,
    task: Task,
    actor: User,
    content: str,
) -> None:
    """Notify the creator, the assignees and the admins, never the commenter."""
    involved = _others([task.assigned_by_id] + task.assignee_ids, actor)
    message = f'{actor.name} commented on task: {task.title} - "{content}" {task_reference(task.id)}'
    dispatcher.notify_many(involved, "New Comment on Task", message, sender_id=actor.id, task_id=task.id)
    dispatcher.notify_admins(
        "New Comment on Task",
        message,
        exclude=involved + [actor.id],
        sender_id=actor.id,
        task_id=task.id,
        email_subject=f"New Comment on Task: {task.title}",
        email_html=task_event_email("New Comment on Task", task.title, "Comment by", actor.name, extra=content),
    )
