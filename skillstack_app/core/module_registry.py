"""Declarative registration of feature modules.

A feature module is one package under ``skillstack_app.modules`` that exposes
one or more blueprints. ``ModuleDefinition`` lists where each blueprint is
mounted, and ``register_modules`` imports the package and mounts them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from flask import Blueprint, Flask
from werkzeug.utils import import_string


@dataclass(frozen=True)
class ModuleDefinition:
    """A feature package and the ``(blueprint attribute, url prefix)`` pairs it mounts."""

    import_path: str
    mounts: Tuple[Tuple[str, str], ...]

    def blueprints(self) -> Iterable[Tuple[Blueprint, str]]:
        package = import_string(self.import_path)
        for attribute, url_prefix in self.mounts:
            blueprint = getattr(package, attribute, None)
            if not isinstance(blueprint, Blueprint):
                raise TypeError(
                    f"{self.import_path}.{attribute} should be a Flask Blueprint, got {type(blueprint)!r}"
                )
            yield blueprint, url_prefix


def register_modules(app: Flask, modules: Iterable[ModuleDefinition]) -> None:
    for module in modules:
        for blueprint, url_prefix in module.blueprints():
            app.register_blueprint(blueprint, url_prefix=url_prefix)
            app.logger.debug("Mounted %s at %s", blueprint.name, url_prefix)


def register_default_modules(app: Flask) -> None:
    register_modules(app, DEFAULT_MODULES)


DEFAULT_MODULES: Tuple[ModuleDefinition, ...] = (
    ModuleDefinition(
        "skillstack_app.modules.experience",
        mounts=(
            ("experience_api_bp", "/api/experience"),
            ("experience_admin_bp", "/api/admin/experience"),
        ),
    ),
)
