"""Type classifier: splits module types into classes and interfaces."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Tuple

from .metadata import MethodRecord, TypeDefinition
from .namespaces import NamespaceFilter

logger = logging.getLogger(__name__)


class TypeCategory(Enum):
    """Shape of a type definition as far as modeling is concerned."""

    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    VALUE_TYPE = "value_type"


def classify(type_def: TypeDefinition) -> TypeCategory:
    """Return the category of a type definition (enum is checked before value type)."""
    if type_def.is_interface:
        return TypeCategory.INTERFACE
    if type_def.is_enum:
        return TypeCategory.ENUM
    if type_def.is_value_type:
        return TypeCategory.VALUE_TYPE
    return TypeCategory.CLASS


def split_methods(
    methods: Iterable[MethodRecord],
) -> Tuple[List[MethodRecord], List[MethodRecord]]:
    """Partition methods into (constructors, ordinary methods), keeping order."""
    constructors: List[MethodRecord] = []
    ordinary: List[MethodRecord] = []
    for method in methods:
        if method.is_constructor:
            constructors.append(method)
        else:
            ordinary.append(method)
    return constructors, ordinary


@dataclass
class ClassifiedTypes:
    """In-scope types of one module, in declaration order."""

    classes: List[TypeDefinition] = field(default_factory=list)
    interfaces: List[TypeDefinition] = field(default_factory=list)


class TypeClassifier:
    """Keep in-scope reference classes and interfaces; drop enums and value types."""

    def __init__(self, namespace_filter: NamespaceFilter) -> None:
        self._filter = namespace_filter

    def partition(self, types: Iterable[TypeDefinition]) -> ClassifiedTypes:
        result = ClassifiedTypes()
        for type_def in types:
            if not self._filter.is_in_scope(type_def.namespace):
                continue
            category = classify(type_def)
            if category is TypeCategory.CLASS:
                result.classes.append(type_def)
            elif category is TypeCategory.INTERFACE:
                result.interfaces.append(type_def)
            else:
                logger.debug("Skipping %s (%s)", type_def.full_name, category.value)
        return result
