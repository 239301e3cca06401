"""Unit declarations and import-reference resolution."""

from __future__ import annotations

import functools
import importlib
from collections.abc import Iterable
from dataclasses import dataclass

from bootstage.contracts.exceptions import DeclarationError
from bootstage.scene.template import Template

Reference = Template | str | type | None


def resolve_template(reference: str) -> Template:
    """Import ``"package.module:attribute"`` and return it as a template.

    A dotted last segment (``"package.module.attribute"``) is accepted too.

    Raises:
        DeclarationError: If the module or attribute cannot be loaded, or the
            target is neither a :class:`Template` nor a class.
    """
    module_name, sep, attr_path = reference.partition(":")
    if not sep:
        module_name, _, attr_path = reference.rpartition(".")
    if not module_name or not attr_path:
        raise DeclarationError(f"invalid unit reference '{reference}'", reference=reference)

    try:
        module = importlib.import_module(module_name)
    except Exception as exc:
        raise DeclarationError(
            f"cannot import module '{module_name}' for '{reference}': {exc}", reference=reference
        ) from exc

    try:
        target = functools.reduce(getattr, attr_path.split("."), module)
    except AttributeError as exc:
        raise DeclarationError(f"'{module_name}' has no attribute '{attr_path}'", reference=reference) from exc

    return as_template(target, reference=reference)


def as_template(target: object, *, reference: str | None = None) -> Template:
    if isinstance(target, Template):
        return target
    if isinstance(target, type):
        return Template.of(target)
    label = reference if reference is not None else repr(target)
    raise DeclarationError(f"'{label}' is neither a Template nor a class", reference=reference)


@dataclass(frozen=True)
class UnitDeclaration:
    """Inert descriptor naming a unit to instantiate; ``None`` is an empty slot."""

    reference: Reference = None

    @property
    def label(self) -> str:
        ref = self.reference
        if ref is None:
            return "<empty>"
        if isinstance(ref, Template):
            return ref.name
        if isinstance(ref, type):
            return ref.__name__
        return ref

    def resolve(self) -> Template | None:
        """Return the template, or ``None`` for an empty slot.

        Raises:
            DeclarationError: If the reference cannot be resolved.
        """
        ref = self.reference
        if ref is None:
            return None
        if isinstance(ref, str):
            return resolve_template(ref)
        return as_template(ref)


def declare(references: Iterable[Reference | UnitDeclaration]) -> tuple[UnitDeclaration, ...]:
    return tuple(item if isinstance(item, UnitDeclaration) else UnitDeclaration(item) for item in references)
