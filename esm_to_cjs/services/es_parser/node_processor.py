import logging
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from tree_sitter import Node as TSNode

from esm_to_cjs.models import RewriteSite, SiteKind, TreeshakeOptions
from esm_to_cjs.services.es_parser.consts import (
    ALWAYS_IMPURE_TYPES,
    BLOCK_SCOPE_TYPES,
    CLASS_TYPES,
    FUNCTION_EXPRESSION_TYPES,
    FUNCTION_TYPES,
    KNOWN_GLOBALS,
    LITERAL_TYPES,
    LOOP_SCOPE_TYPES,
    PURE_ANNOTATIONS,
)


logger = logging.getLogger(__name__)

_PURE_LEAF_TYPES: set[str] = {
    "comment",
    "property_identifier",
    "private_property_identifier",
    "shorthand_property_identifier",
    "string_fragment",
    "escape_sequence",
    "optional_chain",
    "method_definition",
    "meta_property",
}
_NAMED_SCOPE_TYPES: set[str] = FUNCTION_TYPES | CLASS_TYPES
_IDENTIFIER_TYPES: set[str] = {
    "identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
}
_ASSIGNMENT_PATTERN_TYPES: dict[str, str | None] = {
    "parenthesized_expression": None,
    "object_pattern": None,
    "array_pattern": None,
    "rest_pattern": None,
    "pair_pattern": "value",
    "assignment_pattern": "left",
    "object_assignment_pattern": "left",
}
_ASSIGNMENT_TARGET_FIELDS: dict[str, str] = {
    "assignment_expression": "left",
    "augmented_assignment_expression": "left",
    "for_in_statement": "left",
    "update_expression": "argument",
}
_PURE_COMPOSITE_TYPES: set[str] = {
    "parenthesized_expression",
    "binary_expression",
    "ternary_expression",
    "sequence_expression",
    "array",
    "object",
    "pair",
    "spread_element",
    "computed_property_name",
    "template_substitution",
    "template_string",
}


class StatementFacts(BaseModel):
    """References and rewrite sites collected from one top-level statement."""

    references: set[str] = Field(default_factory=set)
    sites: list[RewriteSite] = Field(default_factory=list)
    dynamic_imports: list[str] = Field(default_factory=list)
    reassigned: set[str] = Field(default_factory=set)


class NodeProcessor(BaseModel):
    """Scope and side-effect analysis over tree-sitter JavaScript nodes.

    ``top_level_names`` holds every module-scope binding (declarations and
    import locals). Identifiers resolving to one of those names, and not
    shadowed by an inner scope, are reported as references.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: Path
    source: bytes
    top_level_names: set[str] = Field(default_factory=set)
    options: TreeshakeOptions = Field(default_factory=TreeshakeOptions)

    def text(self, node: TSNode) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8")

    def string_value(self, node: TSNode) -> str:
        """Return the value of a string literal or the text of an identifier."""

        raw = self.text(node)
        if node.type == "string" and len(raw) >= 2:
            return raw[1:-1]
        return raw

    # -- bindings ---------------------------------------------------------

    def pattern_nodes(self, node: TSNode | None) -> list[TSNode]:
        """Return the identifier nodes bound by a declaration pattern."""

        if node is None:
            return []
        match node.type:
            case "identifier" | "shorthand_property_identifier_pattern":
                return [node]
            case "object_pattern" | "array_pattern" | "formal_parameters":
                found: list[TSNode] = []
                for child in node.named_children:
                    found.extend(self.pattern_nodes(child))
                return found
            case "pair_pattern":
                return self.pattern_nodes(node.child_by_field_name("value"))
            case "assignment_pattern" | "object_assignment_pattern":
                return self.pattern_nodes(node.child_by_field_name("left"))
            case "rest_pattern":
                return [n for child in node.named_children for n in self.pattern_nodes(child)]
        return []

    def declared_nodes(self, declaration: TSNode) -> list[TSNode]:
        """Return the name nodes a declaration statement binds in its scope."""

        if declaration.type in {"lexical_declaration", "variable_declaration"}:
            return [
                name
                for declarator in declaration.named_children
                if declarator.type == "variable_declarator"
                for name in self.pattern_nodes(declarator.child_by_field_name("name"))
            ]
        name_node = declaration.child_by_field_name("name")
        if name_node is not None and name_node.type == "identifier":
            return [name_node]
        return []

    def __block_names(self, block: TSNode) -> set[str]:
        names: set[str] = set()
        statements: list[TSNode] = []
        for child in block.named_children:
            if child.type in {"switch_case", "switch_default"}:
                statements.extend(child.named_children)
            else:
                statements.append(child)
        for statement in statements:
            if statement.type == "variable_declaration":
                continue
            if statement.type in {
                "lexical_declaration",
                "function_declaration",
                "generator_function_declaration",
                "class_declaration",
            }:
                names.update(self.text(n) for n in self.declared_nodes(statement))
        return names

    def __hoisted_var_names(self, node: TSNode) -> set[str]:
        names: set[str] = set()
        for child in node.named_children:
            if child.type in FUNCTION_TYPES or child.type in CLASS_TYPES:
                if child.type in {"function_declaration", "generator_function_declaration"}:
                    names.update(self.text(n) for n in self.declared_nodes(child))
                continue
            if child.type == "variable_declaration":
                names.update(self.text(n) for n in self.declared_nodes(child))
            kind = child.child_by_field_name("kind") if child.type == "for_in_statement" else None
            if kind is not None and self.text(kind) == "var":
                names.update(self.text(n) for n in self.pattern_nodes(child.child_by_field_name("left")))
            names.update(self.__hoisted_var_names(child))
        return names

    def __scope_for(self, node: TSNode) -> set[str] | None:
        node_type = node.type
        if node_type in FUNCTION_TYPES:
            names: set[str] = set()
            name_node = node.child_by_field_name("name")
            if (
                node_type in FUNCTION_EXPRESSION_TYPES
                and name_node is not None
                and name_node.type == "identifier"
            ):
                names.add(self.text(name_node))
            for field in ("parameters", "parameter"):
                names.update(self.text(n) for n in self.pattern_nodes(node.child_by_field_name(field)))
            body = node.child_by_field_name("body")
            if body is not None and body.type == "statement_block":
                names.update(self.__hoisted_var_names(body))
            return names
        if node_type == "class":
            name_node = node.child_by_field_name("name")
            return {self.text(name_node)} if name_node is not None else set()
        if node_type in BLOCK_SCOPE_TYPES:
            return self.__block_names(node)
        if node_type in LOOP_SCOPE_TYPES:
            initializer = node.child_by_field_name("initializer")
            if initializer is not None and initializer.type in {
                "lexical_declaration",
                "variable_declaration",
            }:
                return {self.text(n) for n in self.declared_nodes(initializer)}
            if node.child_by_field_name("kind") is not None:
                left = node.child_by_field_name("left")
                return {self.text(n) for n in self.pattern_nodes(left)}
            return None
        if node_type == "catch_clause":
            parameter = node.child_by_field_name("parameter")
            return {self.text(n) for n in self.pattern_nodes(parameter)}
        return None

    def identifier_names(self, root: TSNode) -> set[str]:
        """Every identifier spelled below ``root`` at any scope, re-export clauses aside."""

        names: set[str] = set()
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "export_statement" and node.child_by_field_name("source") is not None:
                continue
            if node.type in _IDENTIFIER_TYPES:
                names.add(self.text(node))
            stack.extend(node.children)
        return names

    # -- references -------------------------------------------------------

    def analyze(self, node: TSNode, declared_starts: set[int]) -> StatementFacts:
        """Collect references to top-level bindings below ``node``.

        Args:
            node: Top-level statement (or the part of it that is emitted).
            declared_starts: Start bytes of the statement's own top-level
                declaration names, which are not references.

        Returns:
            The references, rewrite sites and dynamic import specifiers.
        """

        facts = StatementFacts()
        self.__walk(node, [], declared_starts, facts)
        return facts

    def __walk(
        self,
        node: TSNode,
        scopes: list[set[str]],
        declared_starts: set[int],
        facts: StatementFacts,
    ) -> None:
        node_type = node.type
        if node_type in _IDENTIFIER_TYPES:
            self.__visit_identifier(node, scopes, declared_starts, facts)
            return
        if node_type == "call_expression" and self.__is_dynamic_import(node):
            if self.__visit_dynamic_import(node, facts):
                return
        if node_type == "member_expression" and self.__is_import_meta_url(node):
            facts.sites.append(
                RewriteSite(kind=SiteKind.META_URL, start_byte=node.start_byte, end_byte=node.end_byte)
            )
            return
        if node_type == "meta_property" and self.text(node).replace(" ", "") == "import.meta":
            facts.sites.append(
                RewriteSite(kind=SiteKind.META, start_byte=node.start_byte, end_byte=node.end_byte)
            )
            return

        inner = self.__scope_for(node)
        if inner is not None:
            scopes = [*scopes, inner]
        name_node = node.child_by_field_name("name") if node_type in _NAMED_SCOPE_TYPES else None
        for child in node.children:
            if name_node is not None and child == name_node and child.type == "identifier":
                continue
            self.__walk(child, scopes, declared_starts, facts)

    def __visit_identifier(
        self,
        node: TSNode,
        scopes: list[set[str]],
        declared_starts: set[int],
        facts: StatementFacts,
    ) -> None:
        if node.start_byte in declared_starts:
            return
        name = self.text(node)
        if name not in self.top_level_names:
            return
        if any(name in scope for scope in scopes):
            return
        facts.references.add(name)
        if self.__is_assignment_target(node):
            facts.reassigned.add(name)
        facts.sites.append(
            RewriteSite(
                kind=SiteKind.REFERENCE if node.type == "identifier" else SiteKind.SHORTHAND,
                start_byte=node.start_byte,
                end_byte=node.end_byte,
                name=name,
            )
        )

    def __is_assignment_target(self, node: TSNode) -> bool:
        """Whether ``node`` is written to, directly or through a destructuring pattern."""

        child, parent = node, node.parent
        while parent is not None and parent.type in _ASSIGNMENT_PATTERN_TYPES:
            field = _ASSIGNMENT_PATTERN_TYPES[parent.type]
            if field is not None and parent.child_by_field_name(field) != child:
                return False
            child, parent = parent, parent.parent
        if parent is None or parent.type not in _ASSIGNMENT_TARGET_FIELDS:
            return False
        return parent.child_by_field_name(_ASSIGNMENT_TARGET_FIELDS[parent.type]) == child

    def __is_dynamic_import(self, node: TSNode) -> bool:
        function = node.child_by_field_name("function")
        return function is not None and function.type == "import"

    def __visit_dynamic_import(self, node: TSNode, facts: StatementFacts) -> bool:
        arguments = node.child_by_field_name("arguments")
        args = [c for c in arguments.named_children if c.type != "comment"] if arguments else []
        if not args or args[0].type != "string":
            logger.warning(
                "Dynamic import with a non-literal argument left as is in %s:%d",
                self.path,
                node.start_point[0] + 1,
            )
            return False
        specifier = self.string_value(args[0])
        facts.dynamic_imports.append(specifier)
        facts.sites.append(
            RewriteSite(
                kind=SiteKind.DYNAMIC_IMPORT,
                start_byte=node.start_byte,
                end_byte=node.end_byte,
                name=specifier,
            )
        )
        return True

    def __is_import_meta_url(self, node: TSNode) -> bool:
        obj = node.child_by_field_name("object")
        prop = node.child_by_field_name("property")
        return (
            obj is not None
            and prop is not None
            and obj.type == "meta_property"
            and self.text(obj).replace(" ", "") == "import.meta"
            and self.text(prop) == "url"
        )

    # -- side effects -----------------------------------------------------

    def __has_pure_annotation(self, node: TSNode) -> bool:
        before = self.source[: node.start_byte].rstrip()
        if not before.endswith(b"*/"):
            return False
        comment = before[before.rfind(b"/*") :].decode("utf-8", errors="replace")
        return any(annotation in comment for annotation in PURE_ANNOTATIONS)

    def __iter_values(self, node: TSNode) -> Iterator[TSNode]:
        for child in node.named_children:
            if child.type != "comment":
                yield child

    def is_pure_class(self, node: TSNode) -> bool:
        for child in node.named_children:
            if child.type == "class_heritage":
                if not all(self.is_pure(value) for value in self.__iter_values(child)):
                    return False
            if child.type != "class_body":
                continue
            for member in child.named_children:
                if member.type == "class_static_block":
                    return False
                if member.type != "field_definition":
                    continue
                is_static = any(c.type == "static" for c in member.children)
                value = member.child_by_field_name("value")
                if is_static and value is not None and not self.is_pure(value):
                    return False
        return True

    def is_pure(self, node: TSNode) -> bool:
        """Whether evaluating the expression ``node`` can have no side effects."""

        node_type = node.type
        if node_type in LITERAL_TYPES or node_type in _PURE_LEAF_TYPES:
            return True
        if node_type == "identifier":
            if not self.options.unknown_global_side_effects:
                return True
            name = self.text(node)
            return name in self.top_level_names or name in KNOWN_GLOBALS
        if node_type in FUNCTION_TYPES:
            return True
        if node_type in CLASS_TYPES:
            return self.is_pure_class(node)
        if node_type in ALWAYS_IMPURE_TYPES:
            return False
        if node_type in _PURE_COMPOSITE_TYPES:
            return all(self.is_pure(child) for child in self.__iter_values(node))
        if node_type == "unary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and self.text(operator) == "delete":
                return False
            argument = node.child_by_field_name("argument")
            return argument is None or self.is_pure(argument)
        if node_type in {"member_expression", "subscript_expression"}:
            if self.options.property_read_side_effects:
                return False
            return all(self.is_pure(child) for child in self.__iter_values(node))
        if node_type in {"call_expression", "new_expression"}:
            if not self.__has_pure_annotation(node):
                return False
            arguments = node.child_by_field_name("arguments")
            if arguments is None:
                return True
            return all(self.is_pure(arg) for arg in self.__iter_values(arguments))
        return False

    def declaration_is_pure(self, declaration: TSNode) -> bool:
        if declaration.type in {"function_declaration", "generator_function_declaration"}:
            return True
        if declaration.type == "class_declaration":
            return self.is_pure_class(declaration)
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            value = declarator.child_by_field_name("value")
            if value is not None and not self.is_pure(value):
                return False
        return True
