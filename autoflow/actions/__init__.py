"""Action handlers used by workflow steps and scheduled tasks."""

from __future__ import annotations

from .base import ActionDispatcher, ActionHandler
from .builtin import (
    CreateTaskAction,
    EmitEventAction,
    InMemoryRecordSink,
    LoggingMailer,
    Mailer,
    RecordSink,
    SendEmailAction,
    SetContextAction,
    UpdateRecordAction,
    builtin_step_actions,
)
from .http import HttpCallAction
from .tasks import (
    CallFunctionAction,
    FunctionRegistry,
    RunWorkflowAction,
    builtin_task_actions,
)
from .templates import render_config, render_template

__all__ = [
    "ActionDispatcher",
    "ActionHandler",
    "CallFunctionAction",
    "CreateTaskAction",
    "EmitEventAction",
    "FunctionRegistry",
    "HttpCallAction",
    "InMemoryRecordSink",
    "LoggingMailer",
    "Mailer",
    "RecordSink",
    "RunWorkflowAction",
    "SendEmailAction",
    "SetContextAction",
    "UpdateRecordAction",
    "builtin_step_actions",
    "builtin_task_actions",
    "render_config",
    "render_template",
]
