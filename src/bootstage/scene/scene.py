"""Live unit instances and the scene that owns them."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator
from typing import TypeVar

from bootstage.scene.template import Template

logger = logging.getLogger(__name__)

T = TypeVar("T")

_serials = itertools.count(1)


class UnitInstance:
    """A materialized template: components plus child instances.

    Components may define two optional hooks:

    * ``bind(instance)`` runs once the whole instance tree is built.
    * ``on_destroy()`` runs when the instance is destroyed.
    """

    def __init__(self, name: str, *, template: Template | None = None, parent: UnitInstance | None = None) -> None:
        self.id = next(_serials)
        self.name = name
        self.template = template
        self.parent = parent
        self.components: list[object] = []
        self.children: list[UnitInstance] = []
        self.active = True
        self._destroyed = False

    @property
    def tag(self) -> str:
        return self.template.key if self.template is not None else self.name

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def walk(self) -> Iterator[UnitInstance]:
        yield self
        for child in self.children:
            yield from child.walk()

    def get_component(self, kind: type[T]) -> T | None:
        for component in self.components:
            if isinstance(component, kind):
                return component
        return None

    def get_components(self, kind: type[T]) -> list[T]:
        return [component for component in self.components if isinstance(component, kind)]

    def get_components_in_children(self, kind: type[T]) -> list[T]:
        """Matching components of this instance and all descendants, depth-first."""
        return [component for node in self.walk() for component in node.get_components(kind)]

    def destroy(self) -> None:
        """Destroy children (newest first), then components in reverse attachment order."""
        if self._destroyed:
            return
        self._destroyed = True
        self.active = False

        for child in reversed(self.children):
            child.destroy()

        for component in reversed(self.components):
            hook = getattr(component, "on_destroy", None)
            if not callable(hook):
                continue
            try:
                hook()
            except Exception:
                logger.exception("on_destroy of %s on '%s' failed", type(component).__name__, self.name)

    def __repr__(self) -> str:
        return f"UnitInstance(name={self.name!r}, id={self.id}, destroyed={self._destroyed})"


class Scene:
    """Registry of live root instances."""

    def __init__(self, name: str = "scene") -> None:
        self.name = name
        self._roots: list[UnitInstance] = []

    @property
    def roots(self) -> tuple[UnitInstance, ...]:
        return tuple(self._roots)

    def __len__(self) -> int:
        return len(self._roots)

    def __iter__(self) -> Iterator[UnitInstance]:
        return iter(tuple(self._roots))

    def __contains__(self, instance: object) -> bool:
        return any(node is instance for root in self._roots for node in root.walk())

    def instantiate(self, template: Template, *, parent: UnitInstance | None = None) -> UnitInstance:
        """Build *template* into the scene and run its ``bind`` hooks.

        A failing ``bind`` destroys the half-bound instance before the error
        propagates, so nothing is left in the scene without an owner.
        """
        instance = self._build(template, parent)
        if parent is None:
            self._roots.append(instance)
        else:
            parent.children.append(instance)

        try:
            for node in instance.walk():
                for component in node.components:
                    bind = getattr(component, "bind", None)
                    if callable(bind):
                        bind(node)
        except Exception:
            self.destroy(instance)
            raise

        logger.debug("Instantiated '%s' (id=%d)", instance.name, instance.id)
        return instance

    def destroy(self, instance: UnitInstance) -> None:
        instance.destroy()
        if instance in self._roots:
            self._roots.remove(instance)
        elif instance.parent is not None and instance in instance.parent.children:
            instance.parent.children.remove(instance)
        logger.debug("Destroyed '%s' (id=%d)", instance.name, instance.id)

    def find_by_tag(self, tag: str) -> UnitInstance | None:
        for root in self._roots:
            for node in root.walk():
                if not node.destroyed and node.tag == tag:
                    return node
        return None

    def find_component(self, kind: type[T]) -> T | None:
        for root in self._roots:
            for node in root.walk():
                if node.destroyed:
                    continue
                component = node.get_component(kind)
                if component is not None:
                    return component
        return None

    def _build(self, template: Template, parent: UnitInstance | None) -> UnitInstance:
        node = UnitInstance(template.name, template=template, parent=parent)
        node.components.extend(component.build() for component in template.components)
        node.children.extend(self._build(child, node) for child in template.children)
        return node
