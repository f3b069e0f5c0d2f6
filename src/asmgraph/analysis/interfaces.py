"""Interface deduplication: the minimal set of interfaces a type introduces."""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from .metadata import TypeDefinition, TypeRef

Resolver = Callable[[TypeRef], Optional[TypeDefinition]]


def deduplicate_interfaces(
    own: Iterable[TypeRef],
    parent_interfaces: Iterable[TypeRef],
    resolve: Resolver,
) -> List[TypeRef]:
    """
    Reduce a type's metadata interface list to the interfaces it introduces.

    Metadata lists every interface on every descendant, so:
    1. Interfaces already declared by the parent class are removed.
    2. Any remaining interface that another remaining interface extends is
       removed (if IBar extends IFoo, listing both keeps only IBar).

    Interfaces that cannot be resolved in the module contribute nothing to
    step 2. Order of the remaining interfaces is preserved.

    Args:
        own: Interfaces listed on the type itself.
        parent_interfaces: Interfaces listed on the parent class (empty if none).
        resolve: Lookup from TypeRef to its definition in the module.

    Returns:
        Deduplicated interfaces, in declaration order.
    """
    inherited = set(parent_interfaces)
    introduced: List[TypeRef] = []
    for iface in own:
        if iface in inherited or iface in introduced:
            continue
        introduced.append(iface)

    redundant: set[str] = set()
    for iface in introduced:
        definition = resolve(iface)
        if definition is None:
            continue
        for extended in definition.interfaces:
            redundant.add(extended.full_name)

    return [iface for iface in introduced if iface.full_name not in redundant]
