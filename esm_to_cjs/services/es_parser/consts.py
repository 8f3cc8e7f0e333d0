FUNCTION_TYPES: set[str] = {
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
}
FUNCTION_EXPRESSION_TYPES: set[str] = {
    "function_expression",
    "function",
    "generator_function",
}
CLASS_TYPES: set[str] = {"class_declaration", "class"}
DECLARATION_TYPES: set[str] = {
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "lexical_declaration",
    "variable_declaration",
}
BLOCK_SCOPE_TYPES: set[str] = {"statement_block", "switch_body", "class_static_block"}
LOOP_SCOPE_TYPES: set[str] = {"for_statement", "for_in_statement"}
LITERAL_TYPES: set[str] = {
    "number",
    "string",
    "regex",
    "true",
    "false",
    "null",
    "undefined",
    "this",
}
ALWAYS_IMPURE_TYPES: set[str] = {
    "assignment_expression",
    "augmented_assignment_expression",
    "update_expression",
    "await_expression",
    "yield_expression",
}
PURE_ANNOTATIONS: tuple[str, ...] = ("#__PURE__", "@__PURE__")
KNOWN_GLOBALS: set[str] = {
    "Array",
    "ArrayBuffer",
    "BigInt",
    "Boolean",
    "Date",
    "Error",
    "Function",
    "Infinity",
    "JSON",
    "Map",
    "Math",
    "NaN",
    "Number",
    "Object",
    "Promise",
    "Proxy",
    "Reflect",
    "RegExp",
    "Set",
    "String",
    "Symbol",
    "TypeError",
    "WeakMap",
    "WeakSet",
    "console",
    "globalThis",
    "undefined",
}
CJS_RESERVED_NAMES: set[str] = {
    "require",
    "exports",
    "module",
    "__filename",
    "__dirname",
}
JS_RESERVED_WORDS: set[str] = {
    "arguments",
    "await",
    "break",
    "case",
    "catch",
    "class",
    "const",
    "continue",
    "debugger",
    "default",
    "delete",
    "do",
    "else",
    "enum",
    "eval",
    "export",
    "extends",
    "false",
    "finally",
    "for",
    "function",
    "if",
    "implements",
    "import",
    "in",
    "instanceof",
    "interface",
    "let",
    "new",
    "null",
    "package",
    "private",
    "protected",
    "public",
    "return",
    "static",
    "super",
    "switch",
    "this",
    "throw",
    "true",
    "try",
    "typeof",
    "undefined",
    "var",
    "void",
    "while",
    "with",
    "yield",
}
