"""Writing of generated manifests to the filesystem.

Paths are handled with ``universal_pathlib`` so the output directory may be
local or any fsspec-supported location.
"""

import logging
from pathlib import Path

from upath import UPath

from vikagen.codegen.codegen import GeneratedFile, GenerationResult
from vikagen.exceptions import OutputError

logger = logging.getLogger(__name__)

__all__ = ['ManifestWriter']


class ManifestWriter:
    """Writes generated files below an output directory.

    Existing files are overwritten. There is no conflict detection.

    Example:
        >>> writer = ManifestWriter('./src/api')
        >>> writer.write(Codegen(document).generate())
        ['src/api/common/types.ts', ...]
    """

    def __init__(self, output_dir: str | Path | UPath):
        self.output_dir = UPath(output_dir)

    def write(self, result: GenerationResult) -> list[str]:
        """Write every file of a generation result.

        Returns:
            The written paths, in manifest order.

        Raises:
            OutputError: If a file cannot be written.
        """
        return [self.write_file(generated) for generated in result.files()]

    def write_file(self, generated: GeneratedFile) -> str:
        path = self.output_dir / generated.path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(generated.content, encoding='utf-8')
        except OSError as e:
            raise OutputError(str(path), cause=e) from e
        logger.debug(f'Wrote {path}')
        return str(path)
