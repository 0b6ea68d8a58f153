"""Command dispatch: verb table, authorization predicates and the dispatcher."""

from __future__ import annotations

from buildsvc.dispatch.commands import COMMANDS, CommandSpec, Route, Target
from buildsvc.dispatch.dispatcher import Dispatcher
from buildsvc.dispatch.predicates import Subject

__all__ = ["COMMANDS", "CommandSpec", "Dispatcher", "Route", "Subject", "Target"]
