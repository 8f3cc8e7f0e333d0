import logging
from pathlib import Path

from esm_to_cjs.errors import WriteError
from esm_to_cjs.models import OutputDescriptor

logger = logging.getLogger(__name__)


class OutputWriter:
    """Persist generated modules to disk.

    Nothing is written until the caller has every output of a run in hand,
    so a conversion failure never leaves a half-written output directory
    behind it. Existing files at the destinations are overwritten.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding: str = encoding

    def write(self, output: OutputDescriptor) -> Path:
        destination = output.destination
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(output.content, encoding=self.encoding)
        except OSError as e:
            logger.exception("Failed to write CommonJS module to %s", destination)
            raise WriteError(destination, e.strerror or str(e)) from e
        return destination

    def write_all(self, outputs: list[OutputDescriptor]) -> list[Path]:
        """Write every output, in order.

        Args:
            outputs: Fully rendered modules of one conversion run.

        Returns:
            The written file paths.

        Raises:
            WriteError: On the first file that cannot be written.
        """

        written = [self.write(output) for output in outputs]
        logger.debug("Wrote %d files", len(written))
        return written
