import logging
from pathlib import Path
from typing import Any

import tree_sitter_javascript as tsjavascript
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from tree_sitter import Language, Node as TSNode, Parser, Tree

from esm_to_cjs.errors import ParseError
from esm_to_cjs.models import (
    ExportDeclaration,
    ExportKind,
    ImportBinding,
    ImportDeclaration,
    ModuleID,
    ModuleRecord,
    StatementKind,
    TopLevelStatement,
    TreeshakeOptions,
)
from esm_to_cjs.models.module import DEFAULT_EXPORT, NAMESPACE
from esm_to_cjs.services.es_parser.consts import DECLARATION_TYPES, FUNCTION_EXPRESSION_TYPES
from esm_to_cjs.services.es_parser.node_processor import NodeProcessor
from esm_to_cjs.utils.naming import identifier_from_path, unique_name

logger = logging.getLogger(__name__)


def _first_error(node: TSNode) -> TSNode | None:
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _first_error(child)
        if found is not None:
            return found
    return node


class ESModuleParser(BaseModel):
    """Parse one ES module into a graph node.

    The source handed in has already been through the transform pipeline.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: Path
    source: bytes
    options: TreeshakeOptions = Field(default_factory=TreeshakeOptions)
    __parser: Parser = PrivateAttr(
        default_factory=lambda: Parser(Language(tsjavascript.language()))
    )
    __tree: Tree = PrivateAttr()
    __processor: NodeProcessor = PrivateAttr()
    __default_local: str | None = PrivateAttr(default=None)

    def model_post_init(self, context: Any) -> None:
        self.__tree = self.__parser.parse(self.source)
        self.__processor = NodeProcessor(path=self.path, source=self.source, options=self.options)
        return super().model_post_init(context)

    def build(self, module_id: ModuleID, is_entry: bool = False) -> ModuleRecord:
        root = self.__tree.root_node
        self.__raise_on_syntax_error(root)

        self.__processor.top_level_names = self.__collect_top_level_names(root)
        record = ModuleRecord(
            id=module_id,
            path=self.path,
            source=self.source,
            is_entry=is_entry,
            identifiers=self.__processor.identifier_names(root),
        )

        pending_comment: int | None = None
        for child in root.named_children:
            if child.type == "comment":
                if pending_comment is None:
                    pending_comment = child.start_byte
                continue
            if child.type in {"hash_bang_line", "empty_statement"}:
                pending_comment = None
                continue
            leading_start = pending_comment if pending_comment is not None else child.start_byte
            pending_comment = None
            statement = self.__build_statement(child, len(record.statements), leading_start, record)
            record.statements.append(statement)

        logger.debug(
            "Parsed %s: %d statements, %d imports, %d exports",
            self.path,
            len(record.statements),
            len(record.imports),
            len(record.exports),
        )
        return record

    def __raise_on_syntax_error(self, root: TSNode) -> None:
        if not root.has_error:
            return
        error = _first_error(root) or root
        row, column = error.start_point
        snippet = (self.__processor.text(error).splitlines() or [""])[0][:40]
        raise ParseError(self.path, row + 1, column + 1, snippet)

    def __collect_top_level_names(self, root: TSNode) -> set[str]:
        names: set[str] = set()
        needs_default_local = False
        for child in root.named_children:
            if child.type == "import_statement":
                names.update(b.local for b in self.__import_declaration(child).bindings)
            elif child.type in DECLARATION_TYPES:
                names.update(self.__processor.text(n) for n in self.__processor.declared_nodes(child))
            elif child.type == "export_statement":
                declaration = child.child_by_field_name("declaration")
                value = child.child_by_field_name("value")
                if declaration is not None:
                    names.update(
                        self.__processor.text(n) for n in self.__processor.declared_nodes(declaration)
                    )
                elif value is not None:
                    name_node = value.child_by_field_name("name")
                    if value.type in FUNCTION_EXPRESSION_TYPES | {"class"} and name_node is not None:
                        names.add(self.__processor.text(name_node))
                    else:
                        needs_default_local = True
        if needs_default_local:
            self.__default_local = unique_name(identifier_from_path(self.path), names)
            names.add(self.__default_local)
        return names

    # -- imports ----------------------------------------------------------

    def __import_declaration(self, node: TSNode) -> ImportDeclaration:
        processor = self.__processor
        source = processor.string_value(node.child_by_field_name("source"))
        bindings: list[ImportBinding] = []
        for clause in node.named_children:
            if clause.type != "import_clause":
                continue
            for child in clause.named_children:
                if child.type == "identifier":
                    bindings.append(ImportBinding(local=processor.text(child), imported=DEFAULT_EXPORT))
                elif child.type == "namespace_import":
                    local = next(c for c in child.named_children if c.type == "identifier")
                    bindings.append(ImportBinding(local=processor.text(local), imported=NAMESPACE))
                elif child.type == "named_imports":
                    for spec in child.named_children:
                        if spec.type != "import_specifier":
                            continue
                        imported = processor.string_value(spec.child_by_field_name("name"))
                        alias = spec.child_by_field_name("alias")
                        local = processor.text(alias) if alias is not None else imported
                        bindings.append(ImportBinding(local=local, imported=imported))
        return ImportDeclaration(source=source, bindings=bindings, line=node.start_point[0] + 1)

    # -- statements -------------------------------------------------------

    def __build_statement(
        self, node: TSNode, index: int, leading_start: int, record: ModuleRecord
    ) -> TopLevelStatement:
        base: dict[str, Any] = {
            "index": index,
            "leading_start": leading_start,
            "start_byte": node.start_byte,
            "code_start": node.start_byte,
            "code_end": node.end_byte,
        }
        if node.type == "import_statement":
            record.imports.append(self.__import_declaration(node))
            return TopLevelStatement(kind=StatementKind.IMPORT, **base)
        if node.type == "export_statement":
            return self.__export_statement(node, base, record)
        if node.type in DECLARATION_TYPES:
            return self.__declaration(node, base)
        if self.__is_directive(node):
            return TopLevelStatement(kind=StatementKind.DIRECTIVE, **base)

        facts = self.__processor.analyze(node, set())
        if node.type == "expression_statement":
            expressions = [c for c in node.named_children if c.type != "comment"]
            has_side_effects = not all(self.__processor.is_pure(e) for e in expressions)
        else:
            has_side_effects = True
        return TopLevelStatement(
            kind=StatementKind.OTHER,
            references=facts.references,
            sites=facts.sites,
            dynamic_imports=facts.dynamic_imports,
            reassigned=facts.reassigned,
            has_side_effects=has_side_effects,
            **base,
        )

    def __is_directive(self, node: TSNode) -> bool:
        if node.type != "expression_statement":
            return False
        expressions = node.named_children
        return (
            len(expressions) == 1
            and expressions[0].type == "string"
            and self.__processor.string_value(expressions[0]) == "use strict"
        )

    def __declaration(self, declaration: TSNode, base: dict[str, Any]) -> TopLevelStatement:
        processor = self.__processor
        name_nodes = processor.declared_nodes(declaration)
        facts = processor.analyze(declaration, {n.start_byte for n in name_nodes})
        base = {**base, "code_start": declaration.start_byte, "code_end": declaration.end_byte}
        return TopLevelStatement(
            kind=StatementKind.DECLARATION,
            declared=[processor.text(n) for n in name_nodes],
            references=facts.references,
            sites=facts.sites,
            dynamic_imports=facts.dynamic_imports,
            reassigned=facts.reassigned,
            has_side_effects=not processor.declaration_is_pure(declaration),
            **base,
        )

    def __export_statement(
        self, node: TSNode, base: dict[str, Any], record: ModuleRecord
    ) -> TopLevelStatement:
        processor = self.__processor
        source_node = node.child_by_field_name("source")
        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")
        is_default = any(child.type == "default" for child in node.children)

        if source_node is not None:
            record.exports.extend(self.__reexports(node, processor.string_value(source_node)))
            return TopLevelStatement(kind=StatementKind.EXPORT_CLAUSE, **base)

        if declaration is not None:
            statement = self.__declaration(declaration, base)
            if is_default:
                record.exports.append(
                    ExportDeclaration(
                        kind=ExportKind.LOCAL, exported=DEFAULT_EXPORT, local=statement.declared[0]
                    )
                )
            else:
                record.exports.extend(
                    ExportDeclaration(kind=ExportKind.LOCAL, exported=name, local=name)
                    for name in statement.declared
                )
            return statement

        if value is not None:
            return self.__default_value(value, base, record)

        for clause in node.named_children:
            if clause.type != "export_clause":
                continue
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                local = processor.string_value(spec.child_by_field_name("name"))
                alias = spec.child_by_field_name("alias")
                exported = processor.string_value(alias) if alias is not None else local
                record.exports.append(
                    ExportDeclaration(kind=ExportKind.LOCAL, exported=exported, local=local)
                )
        return TopLevelStatement(kind=StatementKind.EXPORT_CLAUSE, **base)

    def __reexports(self, node: TSNode, source: str) -> list[ExportDeclaration]:
        processor = self.__processor
        for child in node.named_children:
            if child.type == "export_clause":
                exports: list[ExportDeclaration] = []
                for spec in child.named_children:
                    if spec.type != "export_specifier":
                        continue
                    imported = processor.string_value(spec.child_by_field_name("name"))
                    alias = spec.child_by_field_name("alias")
                    exports.append(
                        ExportDeclaration(
                            kind=ExportKind.REEXPORT,
                            exported=processor.string_value(alias) if alias is not None else imported,
                            imported=imported,
                            source=source,
                        )
                    )
                return exports
            if child.type == "namespace_export":
                names = [c for c in child.named_children if c.type in {"identifier", "string"}]
                return [
                    ExportDeclaration(
                        kind=ExportKind.NAMESPACE_REEXPORT,
                        exported=processor.string_value(names[-1]),
                        source=source,
                    )
                ]
        return [ExportDeclaration(kind=ExportKind.STAR, source=source)]

    def __default_value(
        self, value: TSNode, base: dict[str, Any], record: ModuleRecord
    ) -> TopLevelStatement:
        processor = self.__processor
        if value.type == "identifier" and processor.text(value) in processor.top_level_names:
            record.exports.append(
                ExportDeclaration(kind=ExportKind.LOCAL, exported=DEFAULT_EXPORT, local=processor.text(value))
            )
            return TopLevelStatement(kind=StatementKind.EXPORT_CLAUSE, **base)

        facts = processor.analyze(value, set())
        fields: dict[str, Any] = {
            **base,
            "code_start": value.start_byte,
            "code_end": value.end_byte,
            "references": facts.references,
            "sites": facts.sites,
            "dynamic_imports": facts.dynamic_imports,
            "reassigned": facts.reassigned,
        }
        name_node = value.child_by_field_name("name")
        is_function = value.type in FUNCTION_EXPRESSION_TYPES
        if (is_function or value.type == "class") and name_node is not None:
            local = processor.text(name_node)
            statement = TopLevelStatement(
                kind=StatementKind.DECLARATION,
                declared=[local],
                has_side_effects=not processor.is_pure(value),
                **fields,
            )
        elif is_function:
            local = self.__default_local or "_default"
            parameters = value.child_by_field_name("parameters")
            keyword = self.source[value.start_byte : parameters.start_byte].decode("utf-8").strip()
            fields["code_start"] = parameters.start_byte
            statement = TopLevelStatement(
                kind=StatementKind.DECLARATION,
                declared=[local],
                prefix=f"{keyword} {local}",
                **fields,
            )
        elif value.type == "class":
            local = self.__default_local or "_default"
            keyword = next(c for c in value.children if c.type == "class")
            rest = keyword.next_sibling
            fields["code_start"] = rest.start_byte if rest is not None else value.end_byte
            statement = TopLevelStatement(
                kind=StatementKind.DECLARATION,
                declared=[local],
                prefix=f"class {local} ",
                has_side_effects=not processor.is_pure_class(value),
                **fields,
            )
        else:
            local = self.__default_local or "_default"
            statement = TopLevelStatement(
                kind=StatementKind.DEFAULT_EXPRESSION,
                declared=[local],
                prefix=f"const {local} = ",
                suffix=";",
                has_side_effects=not processor.is_pure(value),
                **fields,
            )
        record.exports.append(
            ExportDeclaration(kind=ExportKind.LOCAL, exported=DEFAULT_EXPORT, local=local)
        )
        return statement
