"""Selection pruning.

``parse_resolve_info`` reads the GraphQL field nodes of the field being
resolved into a plain ``ResolveTree``; ``prune_selection`` maps that tree onto
a table: the scalar columns to project and the relations to load, each with
its own arguments and nested selection.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from graphql import (
    FieldNode,
    FragmentSpreadNode,
    GraphQLIncludeDirective,
    GraphQLSkipDirective,
    InlineFragmentNode,
    get_named_type,
)
from graphql.execution.values import get_argument_values, get_directive_values

from ..errors import ArgumentError
from .arguments import RelationArgs
from .result import Err, Ok, Result
from .schema import Relation, SchemaRegistry
from .utils import input_to_dict

__all__ = [
    'ResolveTree',
    'RelationSelection',
    'Selection',
    'parse_resolve_info',
    'prune_selection',
]


@dataclass
class ResolveTree:
    name: str
    alias: Optional[str] = None
    args: Dict[str, Any] = field(default_factory=dict)
    # keyed by field name; aliased occurrences of one field are merged
    fields: Dict[str, 'ResolveTree'] = field(default_factory=dict)


@dataclass
class RelationSelection:
    relation: Relation
    args: RelationArgs
    selection: 'Selection'


@dataclass
class Selection:
    table_name: str
    columns: List[str] = field(default_factory=list)
    relations: Dict[str, RelationSelection] = field(default_factory=dict)


def _included(node: Any, variables: Dict[str, Any]) -> bool:
    skip = get_directive_values(GraphQLSkipDirective, node, variables)
    if skip and skip.get('if') is True:
        return False
    include = get_directive_values(GraphQLIncludeDirective, node, variables)
    if include and include.get('if') is False:
        return False
    return True


def _merge(into: Dict[str, ResolveTree], tree: ResolveTree) -> None:
    existing = into.get(tree.name)
    if existing is None:
        into[tree.name] = tree
        return
    if existing.args != tree.args:
        label = tree.alias or tree.name
        raise ArgumentError(
            f"Field '{tree.name}' is selected more than once with different arguments", label
        )
    for sub in tree.fields.values():
        _merge(existing.fields, sub)


def _collect(raw: Any, parent_type: Any, selection_set: Any, out: Dict[str, ResolveTree]) -> None:
    if selection_set is None:
        return
    variables = raw.variable_values or {}
    for node in selection_set.selections:
        if not _included(node, variables):
            continue
        if isinstance(node, FieldNode):
            name = node.name.value
            if name.startswith('__'):
                continue
            field_def = getattr(parent_type, 'fields', {}).get(name)
            if field_def is None:
                continue
            _merge(out, _build_tree(raw, field_def, node))
        elif isinstance(node, InlineFragmentNode):
            _collect(raw, parent_type, node.selection_set, out)
        elif isinstance(node, FragmentSpreadNode):
            frag = raw.fragments.get(node.name.value)
            if frag is not None:
                _collect(raw, parent_type, frag.selection_set, out)


def _build_tree(raw: Any, field_def: Any, node: FieldNode) -> ResolveTree:
    args = get_argument_values(field_def, node, raw.variable_values)
    tree = ResolveTree(
        name=node.name.value,
        alias=node.alias.value if node.alias else None,
        args=input_to_dict(dict(args)),
    )
    _collect(raw, get_named_type(field_def.type), node.selection_set, tree.fields)
    return tree


def parse_resolve_info(info: Any) -> ResolveTree:
    """Resolve tree of the field currently being resolved.

    Accepts a Strawberry ``Info`` or a graphql-core ``GraphQLResolveInfo``.
    Fragment spreads and inline fragments are flattened, ``@skip``/``@include``
    are honored and introspection fields are dropped. Arguments are coerced
    against the schema, so variables are already substituted.
    """
    raw = getattr(info, '_raw_info', info)
    field_def = raw.parent_type.fields[raw.field_name]
    root: Optional[ResolveTree] = None
    for node in raw.field_nodes:
        tree = _build_tree(raw, field_def, node)
        if root is None:
            root = tree
        else:
            for sub in tree.fields.values():
                _merge(root.fields, sub)
    if root is None:
        return ResolveTree(name=raw.field_name)
    return root


def _prune(registry: SchemaRegistry, table_name: str, fields: Dict[str, ResolveTree], path: str) -> Selection:
    table = registry.table(table_name)
    requested = set()
    rels: Dict[str, RelationSelection] = {}
    for name, sub in fields.items():
        if name in table.c:
            requested.add(name)
            continue
        rel = registry.relation(table_name, name)
        if rel is None:
            continue
        rel_path = f"{path}.{name}" if path else name
        validated = RelationArgs.from_raw(sub.args, rel.is_many).validate(rel_path)
        if not validated.is_ok:
            raise validated.error
        rels[name] = RelationSelection(
            relation=rel,
            args=validated.value,
            selection=_prune(registry, rel.target, sub.fields, rel_path),
        )
    columns = [col.key for col in table.columns if col.key in requested]
    if not columns:
        columns = [registry.identity_column(table_name)]
    return Selection(table_name=table_name, columns=columns, relations=rels)


def prune_selection(registry: SchemaRegistry, table_name: str, fields: Dict[str, ResolveTree]) -> Result:
    """Projection for ``table_name`` restricted to the requested fields.

    Columns come back in table order; unknown field names are ignored. When no
    scalar column is requested the identity column is projected instead.
    """
    looked_up = registry.resolve_table(table_name)
    if not looked_up.is_ok:
        return looked_up
    try:
        return Ok(_prune(registry, table_name, fields, ''))
    except ArgumentError as e:
        return Err(e)
