import re
from typing import Final

from esm_to_cjs.models import ModuleID
from esm_to_cjs.services.transforms.base import ITransformPass

CREATE_REQUIRE_IMPORT: Final[re.Pattern[str]] = re.compile(
    r"^[ \t]*import\s*\{\s*createRequire\s*\}\s*from\s*(['\"])(?:node:)?module\1;?[ \t]*(?:\r?\n)?",
    re.MULTILINE,
)
REQUIRE_BINDING: Final[re.Pattern[str]] = re.compile(
    r"^[ \t]*(?:const|let|var)\s+require\s*=\s*createRequire\(.*\)[ \t]*;?[ \t]*\r?$\n?",
    re.MULTILINE,
)


class RemoveCreateRequirePass(ITransformPass):
    """Strip the ``createRequire`` shim ESM code uses to get a ``require``.

    CommonJS output has a native ``require``, so the import of
    ``createRequire`` and the ``const require = createRequire(...)`` line are
    both dropped. Nothing is touched unless both lines are present.
    """

    name: str = "remove-create-require"

    def transform(self, code: str, module_id: ModuleID) -> str | None:
        if not CREATE_REQUIRE_IMPORT.search(code) or not REQUIRE_BINDING.search(code):
            return None
        code = CREATE_REQUIRE_IMPORT.sub("", code, count=1)
        return REQUIRE_BINDING.sub("", code, count=1)
