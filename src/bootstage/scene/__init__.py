"""Templates, live instances and the spawned-instances ledger."""

from bootstage.scene.declarations import UnitDeclaration, as_template, declare, resolve_template
from bootstage.scene.ledger import SpawnLedger
from bootstage.scene.scene import Scene, UnitInstance
from bootstage.scene.template import Component, Template

__all__ = [
    "Component",
    "Scene",
    "SpawnLedger",
    "Template",
    "UnitDeclaration",
    "UnitInstance",
    "as_template",
    "declare",
    "resolve_template",
]
