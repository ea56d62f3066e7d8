"""
Semantic resolver.

Rewrites a parsed query against the active semantic models: identifiers
become physical expressions, measures become aggregations, time dimensions
become dialect-neutral time buckets. Also decides the FROM side: a single
model becomes a sub-query over its base statement, several models become
projected sub-queries joined on shared entity names.

Ambiguity policy: a name found in several models is ambiguous unless every
hit resolves the same way. When it is not ambiguous the model is chosen as
the first candidate (in supplied order) that declares a default
agg_time_dimension, else the first candidate in supplied order.
"""

import logging
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from semantic_catalog.models import (
    AggregationType, Dimension, Element, Entity, Measure, SemanticModel
)
from sql_compiler.ast_nodes import (
    Aggregation, ColumnRef, ElementRef, Expression, FunctionCall, Identifier, Join, KeepFlag,
    Literal, ModelSource, Operation, OperatorKind, OrderItem, Physical, Query, ResolvedQuery,
    SelectItem, Star, TimeBucket, contains_aggregate
)
from sql_compiler.errors import ResolutionError


logger = logging.getLogger(__name__)

METRIC_TIME = "metric_time"

_ENUM_CHECKED = (OperatorKind.EQ, OperatorKind.NE, OperatorKind.IN, OperatorKind.NOT_IN)


@dataclass(eq=False)
class Binding:
    """An identifier bound to one element of one model."""
    model: SemanticModel
    element: Element
    kind: str  # "entity" | "dimension" | "measure"
    virtual_name: Optional[str] = None

    @property
    def ref(self) -> ElementRef:
        return ElementRef(self.model.name, self.element.name, self.kind)

    def signature(self) -> tuple:
        element = self.element
        if isinstance(element, Entity):
            return ("entity", element.name.lower())
        if isinstance(element, Dimension):
            return ("dimension", element.physical_expr, element.granularity)
        nad = element.non_additive_dimension
        return ("measure", element.physical_expr, element.agg, nad.name if nad else None)


def _kind_of(element: Element) -> str:
    if isinstance(element, Entity):
        return "entity"
    if isinstance(element, Dimension):
        return "dimension"
    return "measure"


def flag_name(measure: Measure) -> str:
    return f"__nad_{measure.name}"


def split_conjuncts(expr: Optional[Expression]) -> List[Expression]:
    if expr is None:
        return []
    if isinstance(expr, Operation) and expr.op == OperatorKind.AND:
        return split_conjuncts(expr.operands[0]) + split_conjuncts(expr.operands[1])
    return [expr]


def join_conjuncts(conjuncts: Sequence[Expression]) -> Optional[Expression]:
    result = None
    for conjunct in conjuncts:
        result = conjunct if result is None else Operation(OperatorKind.AND, (result, conjunct))
    return result


class SemanticResolver:
    """Resolves parsed queries against a fixed set of semantic models."""

    def __init__(self, models: Sequence[SemanticModel]):
        self.models = list(models)

    def resolve(self, query: Query) -> ResolvedQuery:
        return _QueryResolution(self.models, query).run()


class _QueryResolution:
    """State for resolving one query. Discarded afterwards."""

    def __init__(self, models: Sequence[SemanticModel], query: Query):
        self.query = query
        self.active = self._active_models(models, query.from_models)
        self.aliases: Dict[str, SelectItem] = {
            item.alias.lower(): item for item in query.select_items if item.alias
        }
        self.bindings: Dict[Identifier, Binding] = OrderedDict()
        self.join_mode = False
        self.sources: Dict[str, ModelSource] = {}
        # ids of WHERE conjuncts applied inside a model sub-query
        self.pushed_down = set()

    # model selection

    @staticmethod
    def _active_models(models: Sequence[SemanticModel],
                       names: Optional[Tuple[str, ...]]) -> List[SemanticModel]:
        if not models:
            raise ResolutionError("No semantic models are available", "?", [])
        if names is None:
            return list(models)
        active = []
        for name in names:
            match = next((m for m in models if m.name == name), None) or \
                next((m for m in models if m.matches(name)), None)
            if match is None:
                raise ResolutionError(
                    f"Semantic model '{name}' not found",
                    name, [m.name for m in models]
                )
            if match not in active:
                active.append(match)
        return active

    @staticmethod
    def _preferred(models: Sequence[SemanticModel]) -> SemanticModel:
        for model in models:
            if model.defaults.agg_time_dimension:
                return model
        return models[0]

    # clause traversal

    def _clauses(self) -> Iterator[Tuple[str, Expression]]:
        q = self.query
        for item in q.select_items:
            yield "select", item.expr
        if q.where is not None:
            yield "where", q.where
        for expr in q.group_by:
            yield "group", expr
        if q.having is not None:
            yield "having", q.having
        for item in q.order_by:
            yield "order", item.expr

    def _alias_target(self, node: Identifier, clause: str) -> Optional[SelectItem]:
        if clause not in ("group", "having", "order") or node.qualifier:
            return None
        item = self.aliases.get(node.name.lower())
        if item is None:
            return None
        if (node.quoted or item.alias_quoted) and item.alias != node.name:
            return None
        return item

    def _identifiers(self, expr: Expression, clause: str) -> Iterator[Identifier]:
        if isinstance(expr, Identifier):
            if self._alias_target(expr, clause) is None:
                yield expr
            return
        for child in expr.children():
            yield from self._identifiers(child, clause)

    # binding

    def _bind_all(self) -> None:
        pending_metric_time = []
        for clause, expr in self._clauses():
            for node in self._identifiers(expr, clause):
                if node in self.bindings:
                    continue
                binding = self._bind(node)
                if binding is None:
                    pending_metric_time.append(node)
                else:
                    self.bindings[node] = binding
        for node in pending_metric_time:
            self.bindings[node] = self._bind_metric_time(node)

    def _bind(self, node: Identifier) -> Optional[Binding]:
        """Bind one identifier. Returns None for the virtual metric_time."""
        if node.qualifier:
            model = next((m for m in self.active if m.matches(node.qualifier, node.quoted)), None)
            if model is None:
                raise ResolutionError(
                    f"Unknown semantic model '{node.qualifier}' in '{node}'",
                    str(node), [m.name for m in self.active]
                )
            element = model.find_element(node.name, node.quoted)
            if element is None:
                if node.name.lower() == METRIC_TIME:
                    return None
                raise ResolutionError(
                    f"Unresolved identifier '{node}' in semantic model '{model.name}'",
                    str(node), [model.name]
                )
            return Binding(model, element, _kind_of(element))

        hits = []
        for model in self.active:
            element = model.find_element(node.name, node.quoted)
            if element is not None:
                hits.append(Binding(model, element, _kind_of(element)))

        if not hits:
            if node.name.lower() == METRIC_TIME:
                return None
            raise ResolutionError(
                f"Unresolved identifier '{node.name}'. Searched semantic models: "
                f"{[m.name for m in self.active]}",
                node.name, [m.name for m in self.active]
            )

        if len({hit.signature() for hit in hits}) > 1:
            raise ResolutionError(
                f"Ambiguous identifier '{node.name}' found in semantic models "
                f"{[hit.model.name for hit in hits]}; qualify it as <model>.{node.name}",
                node.name, [hit.model.name for hit in hits]
            )

        chosen = self._preferred([hit.model for hit in hits])
        return next(hit for hit in hits if hit.model is chosen)

    def _first_measure(self) -> Optional[Binding]:
        for binding in self.bindings.values():
            if binding.kind == "measure":
                return binding
        return None

    def _bind_metric_time(self, node: Identifier) -> Binding:
        candidates = self.active
        if node.qualifier:
            candidates = [m for m in self.active if m.matches(node.qualifier, node.quoted)]

        measure = self._first_measure()
        if measure is not None and (not node.qualifier or measure.model in candidates):
            name = measure.element.agg_time_dimension or measure.model.defaults.agg_time_dimension
            if name:
                return Binding(measure.model, measure.model.get_dimension(name), "dimension", METRIC_TIME)

        for model in candidates:
            if model.defaults.agg_time_dimension:
                dimension = model.get_dimension(model.defaults.agg_time_dimension)
                return Binding(model, dimension, "dimension", METRIC_TIME)

        raise ResolutionError(
            f"Cannot resolve '{METRIC_TIME}': no measure or semantic model declares an agg_time_dimension",
            str(node), [m.name for m in candidates]
        )

    # sources

    def _models_used(self) -> List[SemanticModel]:
        used: List[SemanticModel] = []
        measure = self._first_measure()
        if measure is not None:
            used.append(measure.model)
        for binding in self.bindings.values():
            if binding.model not in used:
                used.append(binding.model)
        if not used:
            used.append(self._preferred(self.active))
        return used

    def _nad_measures(self, model: SemanticModel) -> List[Measure]:
        measures = []
        for binding in self.bindings.values():
            element = binding.element
            if (binding.model is model and isinstance(element, Measure)
                    and element.non_additive_dimension is not None and element not in measures):
                measures.append(element)
        return measures

    def _row_level_bindings(self, expr: Expression, clause: str) -> Optional[List[Binding]]:
        """Bindings read by a per-row expression; None when it aggregates or uses a measure."""
        if isinstance(expr, Star):
            return None
        if isinstance(expr, Identifier):
            target = self._alias_target(expr, clause)
            if target is not None:
                return self._row_level_bindings(target.expr, "select")
            binding = self.bindings[expr]
            return None if binding.kind == "measure" else [binding]
        if isinstance(expr, FunctionCall) and expr.is_aggregate:
            return None
        found = []
        for child in expr.children():
            inner = self._row_level_bindings(child, clause)
            if inner is None:
                return None
            found.extend(inner)
        return found

    def _local_to(self, model: SemanticModel, expr: Expression, clause: str) -> bool:
        bindings = self._row_level_bindings(expr, clause)
        return bool(bindings) and all(b.model is model for b in bindings)

    def _physical(self, expr: Expression, clause: str) -> Expression:
        """Rewrite against a model's base columns rather than its projected sub-query."""
        join_mode, self.join_mode = self.join_mode, False
        try:
            return self.rewrite(expr, clause)
        finally:
            self.join_mode = join_mode

    def _group_candidates(self) -> List[Tuple[Expression, str]]:
        if self.query.group_by:
            return [(expr, "group") for expr in self.query.group_by]
        return [(item.expr, "select") for item in self.query.select_items]

    def _base_filter(self, model: SemanticModel) -> Optional[Expression]:
        conjuncts = []
        for conjunct in split_conjuncts(self.query.where):
            if self._local_to(model, conjunct, "where"):
                conjuncts.append(self._physical(conjunct, "where"))
                if not self.join_mode:
                    # joined sources keep the outer filter as well
                    self.pushed_down.add(id(conjunct))
        return join_conjuncts(conjuncts)

    def _keep_flag(self, model: SemanticModel, measure: Measure) -> KeepFlag:
        nad = measure.non_additive_dimension
        groupings = tuple(model.get_entity(name).physical_expr for name in nad.window_groupings)
        group_keys = ()
        if nad.window_choice is not None:
            group_keys = tuple(
                self._physical(expr, clause) for expr, clause in self._group_candidates()
                if self._local_to(model, expr, clause)
            )
        return KeepFlag(
            name=flag_name(measure),
            partition_by=tuple(entity.physical_expr for entity in model.entities),
            non_additive_expr=model.get_dimension(nad.name).physical_expr,
            window_choice=nad.window_choice,
            window_groupings=groupings,
            group_keys=group_keys
        )

    def _build_sources(self) -> Tuple[ModelSource, Tuple[Join, ...], List[str]]:
        used = self._models_used()
        if len(used) == 1:
            model = used[0]
            flags = tuple(self._keep_flag(model, m) for m in self._nad_measures(model))
            where = self._base_filter(model) if flags else None
            source = ModelSource(model.name, model.name, model.model.strip(), flags=flags, where=where)
            self.sources[model.name] = source
            return source, (), [model.name]

        self.join_mode = True
        start = used[0]
        order, parents = self._join_path(start, used[1:])

        projections: Dict[str, "OrderedDict[str, str]"] = {m.name: OrderedDict() for m in order}
        for binding in self.bindings.values():
            projections[binding.model.name][binding.element.name] = binding.element.physical_expr

        conditions: Dict[str, Tuple[str, str, str]] = {}
        for model in order[1:]:
            parent = parents[model.name]
            key = self._shared_entities(parent, model)[0]
            projections[parent.name].setdefault(key, parent.get_entity(key).physical_expr)
            projections[model.name].setdefault(key, model.get_entity(key).physical_expr)
            conditions[model.name] = (parent.name, key, key)

        for model in order:
            flags = tuple(self._keep_flag(model, m) for m in self._nad_measures(model))
            self.sources[model.name] = ModelSource(
                model.name, model.name, model.model.strip(),
                projections=tuple((expr, name) for name, expr in projections[model.name].items()),
                flags=flags,
                where=self._base_filter(model) if flags else None
            )

        joins = tuple(Join(self.sources[m.name], (conditions[m.name],)) for m in order[1:])
        return self.sources[start.name], joins, [m.name for m in order]

    @staticmethod
    def _shared_entities(left: SemanticModel, right: SemanticModel) -> List[str]:
        right_names = {e.name for e in right.entities}
        return [e.name for e in left.entities if e.name in right_names]

    def _join_path(self, start: SemanticModel, targets: Sequence[SemanticModel]):
        """BFS over active models connected by shared entity names."""
        parents: Dict[str, Optional[SemanticModel]] = {start.name: None}
        discovered = [start]
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for other in self.active:
                if other.name in parents or not self._shared_entities(current, other):
                    continue
                parents[other.name] = current
                discovered.append(other)
                queue.append(other)

        needed = {start.name}
        for target in targets:
            if target.name not in parents:
                raise ResolutionError(
                    f"No join path between semantic models '{start.name}' and '{target.name}': "
                    f"they share no entities",
                    target.name, [start.name]
                )
            node = target
            while node is not None and node.name not in needed:
                needed.add(node.name)
                node = parents[node.name]

        order = [m for m in discovered if m.name in needed]
        logger.debug(f"Join order: {[m.name for m in order]}")
        return order, parents

    # rewriting

    def _column(self, binding: Binding) -> Expression:
        if self.join_mode:
            return ColumnRef(binding.model.name, binding.element.name, binding.ref)
        return Physical(binding.element.physical_expr, binding.ref)

    def _flag_ref(self, binding: Binding) -> Optional[Expression]:
        measure = binding.element
        if measure.non_additive_dimension is None:
            return None
        return ColumnRef(self.sources[binding.model.name].alias, flag_name(measure))

    def _element_expr(self, binding: Binding, in_aggregate: bool) -> Expression:
        column = self._column(binding)
        element = binding.element
        if isinstance(element, Dimension) and element.is_time:
            return TimeBucket(element.granularity, column, binding.ref)
        if isinstance(element, Measure):
            flag = self._flag_ref(binding)
            if in_aggregate:
                # an explicit aggregate over a measure uses the raw expression
                if flag is None:
                    return column
                return Aggregation(AggregationType.NONE, column, flag, binding.ref)
            return Aggregation(element.agg, column, flag, binding.ref)
        return column

    def rewrite(self, expr: Expression, clause: str, in_aggregate: bool = False) -> Expression:
        if isinstance(expr, Identifier):
            target = self._alias_target(expr, clause)
            if target is not None:
                return self.rewrite(target.expr, "select", in_aggregate)
            return self._element_expr(self.bindings[expr], in_aggregate)
        if isinstance(expr, Operation):
            self._check_enum_values(expr, clause)
            return Operation(expr.op, tuple(self.rewrite(o, clause, in_aggregate) for o in expr.operands))
        if isinstance(expr, FunctionCall):
            inner = in_aggregate or expr.is_aggregate
            return FunctionCall(expr.name, tuple(self.rewrite(a, clause, inner) for a in expr.args),
                                expr.distinct)
        return expr

    def _check_enum_values(self, expr: Operation, clause: str) -> None:
        if expr.op not in _ENUM_CHECKED:
            return
        subject = expr.operands[0]
        values = expr.operands[1:]
        if expr.op in (OperatorKind.EQ, OperatorKind.NE) and not isinstance(subject, Identifier):
            subject, values = expr.operands[1], expr.operands[:1]
        if not isinstance(subject, Identifier) or self._alias_target(subject, clause) is not None:
            return
        binding = self.bindings.get(subject)
        if binding is None or not isinstance(binding.element, Dimension):
            return
        allowed = binding.element.allowed_values()
        if not allowed:
            return
        for value in values:
            if (isinstance(value, Literal) and value.ansi_type.is_character
                    and value.value not in allowed):
                raise ResolutionError(
                    f"Value '{value.value}' is not allowed for dimension '{binding.element.name}'. "
                    f"Allowed values: {allowed}",
                    value.value, allowed
                )

    def _select_item(self, item: SelectItem) -> SelectItem:
        if isinstance(item.expr, Star):
            raise ResolutionError("SELECT * is not supported; name the entities, dimensions "
                                  "and measures to select", "*", [m.name for m in self.active])
        resolved = self.rewrite(item.expr, "select")
        if item.alias:
            return SelectItem(resolved, item.alias, item.alias_quoted)
        if isinstance(item.expr, Identifier):
            binding = self.bindings[item.expr]
            return SelectItem(resolved, binding.virtual_name or binding.element.name)
        return SelectItem(resolved)

    def run(self) -> ResolvedQuery:
        q = self.query
        self._bind_all()
        source, joins, models_used = self._build_sources()

        select_items = tuple(self._select_item(item) for item in q.select_items)

        where_conjuncts = []
        having_conjuncts = []
        for conjunct in split_conjuncts(q.where):
            if id(conjunct) in self.pushed_down:
                continue
            resolved = self.rewrite(conjunct, "where")
            # filters on measures can only be applied after aggregation
            if contains_aggregate(resolved):
                having_conjuncts.append(resolved)
            else:
                where_conjuncts.append(resolved)
        if q.having is not None:
            having_conjuncts.append(self.rewrite(q.having, "having"))

        group_by = tuple(self.rewrite(expr, "group") for expr in q.group_by)
        has_aggregates = having_conjuncts or any(contains_aggregate(i.expr) for i in select_items)
        if not group_by and has_aggregates:
            group_by = tuple(
                item.expr for item in select_items
                if not contains_aggregate(item.expr) and not isinstance(item.expr, Literal)
            )

        order_by = tuple(
            OrderItem(self.rewrite(item.expr, "order"), item.descending, item.nulls)
            for item in q.order_by
        )

        resolved = ResolvedQuery(
            select_items=select_items,
            source=source,
            joins=joins,
            distinct=q.distinct,
            where=join_conjuncts(where_conjuncts),
            group_by=group_by,
            having=join_conjuncts(having_conjuncts),
            order_by=order_by,
            limit=q.limit,
            offset=q.offset,
            models_used=tuple(models_used)
        )
        logger.debug(f"Resolved query over models {models_used}")
        return resolved


def resolve_query(query: Query, models: Sequence[SemanticModel]) -> ResolvedQuery:
    return SemanticResolver(models).resolve(query)
