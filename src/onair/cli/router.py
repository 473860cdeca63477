"""
CLI Router: centralized command group registration.

Each command group is a Typer app that owns its own subcommands; the router
keeps registration explicit and lets tests enumerate what is mounted.
"""

from __future__ import annotations

from typing import Any

import typer


class CliRouter:
    """Registers command groups on the root Typer application."""

    def __init__(self, root_app: typer.Typer) -> None:
        self.root_app = root_app
        self._registered_groups: dict[str, dict[str, Any]] = {}

    def register(self, name: str, command_group: typer.Typer, *, help_text: str | None = None) -> None:
        """
        Register a command group with the router.

        Args:
            name: Command group name (e.g., "schedule", "catalog")
            command_group: Typer app instance for this command group
            help_text: Help text for the command group

        Raises:
            ValueError: If ``name`` is already registered.
        """
        if name in self._registered_groups:
            raise ValueError(f"Command group '{name}' is already registered")

        self.root_app.add_typer(command_group, name=name, help=help_text)
        self._registered_groups[name] = {"name": name, "help": help_text, "command_group": command_group}

    def get_registered_groups(self) -> dict[str, dict[str, Any]]:
        return dict(self._registered_groups)


def get_router(root_app: typer.Typer) -> CliRouter:
    return CliRouter(root_app)
