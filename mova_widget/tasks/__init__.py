"""Host-invoked widget task handling."""

from mova_widget.tasks.dispatcher import (
    RETRY_PENDING,
    SUBMIT_TODO,
    WidgetRender,
    WidgetTaskDispatcher,
    display_state_for,
    widget_task_entry,
)

__all__ = [
    "RETRY_PENDING",
    "SUBMIT_TODO",
    "WidgetRender",
    "WidgetTaskDispatcher",
    "display_state_for",
    "widget_task_entry",
]
