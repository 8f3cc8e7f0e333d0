import json
import subprocess
from pathlib import Path

from pydantic import BaseModel


class NodeResolverClient(BaseModel):
    """Ask the local Node.js runtime whether a package resolves by name."""

    cwd: Path
    executable: str = "node"
    timeout: float = 10.0

    def resolves(self, package_name: str) -> bool:
        """Resolve ``<package_name>/package.json`` from ``cwd``.

        Raises:
            FileNotFoundError: If the node executable is missing.
            subprocess.CalledProcessError: If resolution fails.
            subprocess.TimeoutExpired: If node does not answer in time.
        """

        script = f"require.resolve({json.dumps(f'{package_name}/package.json')})"
        subprocess.run(
            [self.executable, "-e", script],
            cwd=self.cwd,
            check=True,
            capture_output=True,
            timeout=self.timeout,
        )
        return True
