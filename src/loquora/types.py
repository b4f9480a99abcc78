"""
Runtime type definitions for Loquora.

Declarations register one of four definition kinds:
    schema   - a named list of fields
    struct   - fields plus tool members
    model    - tool members and field-assignment members, with an optional base
    template - a parameterized text body, never instantiated as an object
"""

from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum
from abc import ABC, abstractmethod

from .ast import (
    FieldDecl, ToolDecl, AssignmentStatement, Parameter,
    SchemaDecl, StructDecl, ModelDecl, TemplateDecl,
)


class TypeKind(Enum):
    """Kinds of user-declared types."""
    SCHEMA = "schema"
    STRUCT = "struct"
    MODEL = "model"
    TEMPLATE = "template"


@dataclass
class TypeDef(ABC):
    """Base class for declared types."""
    name: str

    @property
    @abstractmethod
    def kind(self) -> TypeKind:
        pass

    @property
    def instantiable(self) -> bool:
        return True

    @property
    def fields(self) -> List[FieldDecl]:
        """Declared fields validated at construction."""
        return []

    @property
    def tools(self) -> List[ToolDecl]:
        """Tool members bound into each instance."""
        return []

    def __str__(self) -> str:
        return f"type<{self.name}>"


@dataclass
class SchemaType(TypeDef):
    field_decls: List[FieldDecl] = field(default_factory=list)

    @property
    def kind(self) -> TypeKind:
        return TypeKind.SCHEMA

    @property
    def fields(self) -> List[FieldDecl]:
        return self.field_decls


@dataclass
class StructType(TypeDef):
    field_decls: List[FieldDecl] = field(default_factory=list)
    tool_decls: List[ToolDecl] = field(default_factory=list)

    @property
    def kind(self) -> TypeKind:
        return TypeKind.STRUCT

    @property
    def fields(self) -> List[FieldDecl]:
        return self.field_decls

    @property
    def tools(self) -> List[ToolDecl]:
        return self.tool_decls


@dataclass
class ModelType(TypeDef):
    """
    A model composes its base's members (if any) ahead of its own.
    Field assignments provide per-instance default values.
    """
    base: Optional[str] = None
    tool_decls: List[ToolDecl] = field(default_factory=list)
    defaults: List[AssignmentStatement] = field(default_factory=list)

    @property
    def kind(self) -> TypeKind:
        return TypeKind.MODEL

    @property
    def tools(self) -> List[ToolDecl]:
        return self.tool_decls


@dataclass
class TemplateType(TypeDef):
    parameters: List[Parameter] = field(default_factory=list)
    body: str = ""

    @property
    def kind(self) -> TypeKind:
        return TypeKind.TEMPLATE

    @property
    def instantiable(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"template<{self.name}>"


def type_from_decl(decl) -> TypeDef:
    """Build the runtime definition for a type declaration."""
    if isinstance(decl, SchemaDecl):
        return SchemaType(decl.name, list(decl.fields))
    if isinstance(decl, StructDecl):
        return StructType(decl.name, list(decl.fields), list(decl.tools))
    if isinstance(decl, ModelDecl):
        tools = [m for m in decl.members if isinstance(m, ToolDecl)]
        defaults = [m for m in decl.members if isinstance(m, AssignmentStatement)]
        return ModelType(decl.name, decl.base, tools, defaults)
    if isinstance(decl, TemplateDecl):
        return TemplateType(decl.name, list(decl.parameters), decl.body)
    raise ValueError(f"not a type declaration: {decl.__class__.__name__}")
