from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Union

import strawberry
from sqlalchemy import MetaData
from strawberry.schema.config import StrawberryConfig

from .adapters import get_adapter
from .core.hydration import Remapper
from .core.scalars import PrimitiveTypeMapper
from .core.schema import SchemaRegistry
from .core.types import TypeGenerator
from .errors import SchemaError
from .executor import Executor
from .operations import GeneratedEntities, OperationAssembler, resolve_mutation_mode

_logger = logging.getLogger("tableql")

__all__ = ['TableQLSchema']

_CONFLICT_POLICIES = ('skip', 'error')


class TableQLSchema:
    """Generated GraphQL API for a relational schema.

    Everything (registry, types, operations) is built in the constructor, so a
    malformed schema raises ``SchemaError`` before any request is served.

    Args:
        schema: mapping of identifiers to SQLAlchemy tables and ``relations()``
            declarations, or a ``MetaData``.
        relations_depth_limit: maximum relation hops exposed on select types;
            ``None`` is unlimited (bounded by cycle detection), 0 disables
            relation fields.
        mutation_mode: ``"returning"`` or ``"boolean"``; defaults to what the
            dialect supports.
        dialect: dialect name used to pick the adapter when building executors
            from a session.
        executor_factory: called with ``info`` when the context carries neither
            an ``executor`` nor a session.
        on_conflict: ``"skip"`` ignores conflicting insert rows where the
            dialect can, ``"error"`` lets them fail.
        autocommit: commit the session after each mutation.
    """

    def __init__(self, schema: Union[Mapping[str, Any], MetaData], *,
                 relations_depth_limit: Optional[int] = None,
                 mutation_mode: Optional[str] = None,
                 dialect: Optional[str] = None,
                 executor_factory: Optional[Callable[[Any], Executor]] = None,
                 on_conflict: str = 'skip',
                 autocommit: bool = True):
        if relations_depth_limit is not None and (
            isinstance(relations_depth_limit, bool)
            or not isinstance(relations_depth_limit, int)
            or relations_depth_limit < 0
        ):
            raise SchemaError("relations_depth_limit must be a non-negative integer or None")
        if on_conflict not in _CONFLICT_POLICIES:
            raise SchemaError(f"on_conflict must be one of {_CONFLICT_POLICIES}, got {on_conflict!r}")
        self.relations_depth_limit = relations_depth_limit
        self.dialect = dialect
        self.mutation_mode = resolve_mutation_mode(mutation_mode, dialect)
        self.registry = SchemaRegistry.from_input(schema)
        self.mapper = PrimitiveTypeMapper()
        self.generator = TypeGenerator(self.registry, self.mapper, relations_depth_limit)
        self.generator.generate()
        self.remapper = Remapper(self.registry, self.mapper)
        self.assembler = OperationAssembler(
            self.registry, self.generator, self.remapper,
            mutation_mode=self.mutation_mode,
            skip_conflicts=on_conflict == 'skip',
            adapter=get_adapter(dialect) if dialect else None,
            autocommit=autocommit,
            executor_factory=executor_factory,
        )
        self._entities = self.assembler.assemble()
        self._schema: Optional[strawberry.Schema] = None

    @property
    def entities(self) -> GeneratedEntities:
        return self._entities

    def _root_type(self, name: str, operations: Dict[str, Any]) -> Any:
        cls = type(name, (), {'__module__': __name__})
        anns: Dict[str, Any] = {}
        for op_name, op in operations.items():
            anns[op_name] = op.resolver.__annotations__['return']
            setattr(cls, op_name, op.as_field())
        cls.__annotations__ = anns
        return strawberry.type(cls, name=name)

    def to_strawberry(self, *, strawberry_config: Optional[StrawberryConfig] = None) -> strawberry.Schema:
        """Build a ``strawberry.Schema`` with the generated Query and Mutation roots.

        Without an explicit config the schema keeps generated names as-is
        (``auto_camel_case=False``). Each call builds fresh root types.
        """
        if strawberry_config is None:
            strawberry_config = StrawberryConfig(auto_camel_case=False)
        query = self._root_type('Query', self._entities.queries)
        mutation = self._root_type('Mutation', self._entities.mutations)
        return strawberry.Schema(query=query, mutation=mutation, config=strawberry_config)

    async def execute(self, query: str, variable_values: Optional[Dict[str, Any]] = None,
                      context_value: Any = None, operation_name: Optional[str] = None):
        """Execute a document against a lazily built default schema."""
        if self._schema is None:
            self._schema = self.to_strawberry()
        return await self._schema.execute(
            query,
            variable_values=variable_values,
            context_value=context_value,
            operation_name=operation_name,
        )
