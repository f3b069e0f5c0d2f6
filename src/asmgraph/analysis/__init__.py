"""Assembly analysis: class/interface model and relationship extraction."""

from .builder import (
    AssemblyModelBuilder,
    AssemblyResult,
    parse_assembly,
    parse_assembly_file,
    parse_assembly_files,
)
from .classifier import TypeCategory, TypeClassifier, classify, split_methods
from .dotnet import DotnetModule, ModuleLoadError
from .entities import ExtractionInvariantError, ParsedAssembly, ParsedType, TypeKind
from .interfaces import deduplicate_interfaces
from .metadata import (
    FieldRecord,
    InMemoryModule,
    Instruction,
    MethodRecord,
    ModuleReader,
    OpKind,
    TypeDefinition,
    TypeRef,
)
from .namespaces import DEFAULT_EXCLUDED_NAMESPACES, NamespaceFilter
from .relationships import (
    Relationship,
    RelationshipExtractor,
    RelationshipSet,
    RelationshipType,
)

__all__ = [
    "AssemblyModelBuilder",
    "AssemblyResult",
    "DEFAULT_EXCLUDED_NAMESPACES",
    "DotnetModule",
    "ExtractionInvariantError",
    "FieldRecord",
    "InMemoryModule",
    "Instruction",
    "MethodRecord",
    "ModuleLoadError",
    "ModuleReader",
    "NamespaceFilter",
    "OpKind",
    "ParsedAssembly",
    "ParsedType",
    "Relationship",
    "RelationshipExtractor",
    "RelationshipSet",
    "RelationshipType",
    "TypeCategory",
    "TypeClassifier",
    "TypeDefinition",
    "TypeKind",
    "TypeRef",
    "classify",
    "deduplicate_interfaces",
    "parse_assembly",
    "parse_assembly_file",
    "parse_assembly_files",
    "split_methods",
]
