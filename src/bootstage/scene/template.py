"""Inert unit templates.

A :class:`Template` plays the role of a prefab: a named tree of component
classes that the scene turns into live :class:`~bootstage.scene.scene.UnitInstance`
objects. Templates can be inspected (e.g. counted) without instantiating.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from bootstage.contracts.step import AsyncStep


@dataclass(frozen=True, eq=False)
class Component:
    """A component class plus the keyword arguments used to construct it."""

    cls: type
    kwargs: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.cls, type):
            raise TypeError(f"component must be a class, got {self.cls!r}")

    @property
    def is_step(self) -> bool:
        return issubclass(self.cls, AsyncStep)

    def build(self) -> object:
        return self.cls(**dict(self.kwargs))


@dataclass(frozen=True, eq=False)
class Template:
    """Named tree of components.

    Attributes:
        name: Name given to instances built from this template.
        components: Components of the root, in attachment order. Bare classes
            are accepted and wrapped in :class:`Component`.
        children: Child templates, instantiated beneath the root.
        tag: Lookup key for singleton infrastructure; defaults to *name*.
    """

    name: str
    components: tuple[Component, ...] = ()
    children: tuple[Template, ...] = ()
    tag: str | None = None

    def __post_init__(self) -> None:
        components = tuple(item if isinstance(item, Component) else Component(item) for item in self.components)
        object.__setattr__(self, "components", components)
        object.__setattr__(self, "children", tuple(self.children))

    @classmethod
    def of(cls, component_cls: type, /, *, name: str | None = None, tag: str | None = None, **kwargs: Any) -> Template:
        """Single-component template."""
        return cls(
            name=name or component_cls.__name__,
            components=(Component(component_cls, kwargs),),
            tag=tag,
        )

    @property
    def key(self) -> str:
        return self.tag or self.name

    def walk(self) -> Iterator[Template]:
        yield self
        for child in self.children:
            yield from child.walk()

    def count_steps(self, *, include_children: bool = True) -> int:
        """Number of components implementing :class:`AsyncStep`."""
        nodes = self.walk() if include_children else iter((self,))
        return sum(1 for node in nodes for component in node.components if component.is_step)

    def __repr__(self) -> str:
        return f"Template(name={self.name!r}, components={len(self.components)}, children={len(self.children)})"
