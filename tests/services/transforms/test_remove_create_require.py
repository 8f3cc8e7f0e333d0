from esm_to_cjs.models import ModuleID
from esm_to_cjs.services.transforms.remove_create_require import RemoveCreateRequirePass

MODULE_ID = ModuleID.create("/project/lib/version.js")

SHIM_SOURCE = """import { createRequire } from 'module';
const require = createRequire(import.meta.url);

export const { version } = require('../package.json');
"""


def test_transform__on_shim__removes_import_and_binding_lines() -> None:
    result = RemoveCreateRequirePass().transform(SHIM_SOURCE, MODULE_ID)

    assert result == "\nexport const { version } = require('../package.json');\n"


def test_transform__on_node_prefixed_module__removes_shim() -> None:
    source = 'import {createRequire} from "node:module";\nconst require = createRequire(import.meta.url)\nrequire("x");\n'

    result = RemoveCreateRequirePass().transform(source, MODULE_ID)

    assert result == 'require("x");\n'


def test_transform__on_source_without_shim__returns_none() -> None:
    source = "export const require = () => null;\n"

    assert RemoveCreateRequirePass().transform(source, MODULE_ID) is None


def test_transform__on_import_without_binding__returns_none() -> None:
    source = "import { createRequire } from 'module';\nexport { createRequire };\n"

    assert RemoveCreateRequirePass().transform(source, MODULE_ID) is None


def test_transform__on_already_transformed_source__is_idempotent() -> None:
    transform_pass = RemoveCreateRequirePass()
    once = transform_pass.transform(SHIM_SOURCE, MODULE_ID)

    assert once is not None
    assert transform_pass.transform(once, MODULE_ID) is None


def test_transform__on_nested_call_argument__removes_whole_binding_line() -> None:
    source = (
        "import { createRequire } from 'module';\n"
        "const require = createRequire(new URL('.', import.meta.url));\n"
        "export const x = require('./x.json');\n"
    )

    result = RemoveCreateRequirePass().transform(source, MODULE_ID)

    assert result == "export const x = require('./x.json');\n"


def test_transform__on_code_after_binding_line__keeps_following_lines() -> None:
    source = (
        "import { createRequire } from 'module';\n"
        "const require = createRequire(import.meta.url);\n"
        "const load = (name) => require(name);\n"
    )

    result = RemoveCreateRequirePass().transform(source, MODULE_ID)

    assert result == "const load = (name) => require(name);\n"
