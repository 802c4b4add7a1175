"""Load and save variant-named document files.

Files live in one directory and are named ``<base>[:variant...].<ext>``,
e.g. ``strings.json``, ``strings:es.yaml``, ``strings:es:formal.yml``.
Loading picks the file whose variants best match the requested context.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from dotted_tree.exceptions import StorageError
from dotted_tree.storage import select_variant, storage_key
from dotted_tree.variants import parse_variant_path

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".json", ".yaml", ".yml")


def read_tree(path: Path, encoding: str = "utf-8") -> dict[str, Any]:
    """Parse a JSON or YAML document file into a tree.

    Raises:
        StorageError: If the file cannot be read, parsed, or is not a mapping
    """
    try:
        with path.open(encoding=encoding) as fh:
            if path.suffix == ".json":
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh) or {}
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise StorageError(f"Cannot read {path}: {e}") from e

    if not isinstance(data, dict):
        raise StorageError(f"{path} does not contain a mapping")
    return data


class FileLoader:
    """Variant-aware JSON/YAML file storage.

    Usage:
        loader = FileLoader(Path("locales"))
        tree = await loader.load("strings", {"lang": "es"})

    Args:
        base_dir: Directory holding the document files
        extension: Extension used when saving (".json", ".yaml" or ".yml")
        encoding: Text encoding for reads and writes
    """

    def __init__(self, base_dir: Path | str, extension: str = ".json", encoding: str = "utf-8"):
        if extension not in SUPPORTED_EXTENSIONS:
            raise ValueError(f"Unsupported extension: {extension}")
        self.base_dir = Path(base_dir)
        self.extension = extension
        self.encoding = encoding

    async def load(self, base_name: str, variants: Mapping[str, str] | None = None) -> dict[str, Any]:
        """Load the best-matching variant file for ``base_name``.

        Raises:
            StorageError: If no file exists for the base name or it cannot be parsed
        """
        files = self._files_for(base_name)
        name = select_variant(base_name, variants, files)
        if name not in files:
            raise StorageError(f"No file found for '{base_name}' in {self.base_dir}")

        logger.info("Loading %s for variants %s", files[name], dict(variants or {}))
        return await asyncio.to_thread(self._read, files[name])

    async def save(
        self,
        base_name: str,
        tree: dict[str, Any],
        variants: Mapping[str, str] | None = None,
    ) -> Path:
        """Write ``tree`` under the canonical variant name and return the file path."""
        path = self.base_dir / f"{storage_key(base_name, variants)}{self.extension}"
        await asyncio.to_thread(self._write, path, tree)
        logger.info("Saved %s", path)
        return path

    async def exists(self, base_name: str, variants: Mapping[str, str] | None = None) -> bool:
        return storage_key(base_name, variants) in self._files_for(base_name)

    def list_variants(self, base_name: str) -> list[str]:
        """Stored names for ``base_name`` (e.g. ``["strings", "strings:es"]``)."""
        return list(self._files_for(base_name))

    def _files_for(self, base_name: str) -> dict[str, Path]:
        storage_key(base_name)
        if not self.base_dir.is_dir():
            return {}

        files: dict[str, Path] = {}
        for path in sorted(self.base_dir.iterdir()):
            if path.suffix not in SUPPORTED_EXTENSIONS or not path.is_file():
                continue
            if parse_variant_path(path.stem).base == base_name:
                files.setdefault(path.stem, path)
        return files

    def _read(self, path: Path) -> dict[str, Any]:
        return read_tree(path, self.encoding)

    def _write(self, path: Path, tree: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding=self.encoding) as fh:
                if self.extension == ".json":
                    json.dump(tree, fh, indent=2, ensure_ascii=False)
                    fh.write("\n")
                else:
                    yaml.safe_dump(tree, fh, allow_unicode=True, sort_keys=False)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e
