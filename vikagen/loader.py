"""Loading of OpenAPI documents from URLs or file paths.

The loader is the only part of vikagen that reads a specification: it
fetches or reads the raw text, parses JSON or YAML and normalizes the result
into a :class:`~vikagen.document.DocumentModel`. Nothing is cached.
"""

import json
import logging
from pathlib import Path
from urllib.parse import urlparse

import httpx
import yaml

from vikagen.document import DocumentModel
from vikagen.exceptions import SchemaError, SchemaLoadError

logger = logging.getLogger(__name__)

__all__ = ['SchemaLoader']


class SchemaLoader:
    """Loads OpenAPI documents from URLs or file paths.

    Example:
        >>> loader = SchemaLoader()
        >>> document = loader.load('https://petstore3.swagger.io/api/v3/openapi.json')
        >>> # or
        >>> document = loader.load('./openapi.yaml')
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
        base_path: str | Path | None = None,
    ):
        """Initialize the schema loader.

        Args:
            http_client: Optional HTTP client to use for URL requests.
            timeout: Timeout in seconds of URL requests made without a client.
            base_path: Base path for relative file paths. Defaults to the
                current working directory.
        """
        self._http_client = http_client
        self._timeout = timeout
        self._base_path = Path(base_path) if base_path else Path.cwd()

    def load(self, source: str) -> DocumentModel:
        """Load and normalize a document.

        Args:
            source: URL or file path of the OpenAPI (3.x) or Swagger (2.0) document.

        Returns:
            The normalized document model.

        Raises:
            SchemaLoadError: If the document cannot be read or parsed.
            SchemaReferenceError: If a component reference is broken.
        """
        content = self.load_raw(source)
        try:
            return DocumentModel.from_openapi(content)
        except SchemaLoadError as e:
            if e.source == '<document>':
                raise SchemaLoadError(source, cause=e.cause) from e
            raise
        except SchemaError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise SchemaLoadError(source, cause=e) from e

    def load_raw(self, source: str) -> dict:
        """Read and parse a document without normalizing it."""
        if self._is_url(source):
            content = self._load_from_url(source)
        else:
            content = self._load_from_file(source)

        if not isinstance(content, dict):
            raise SchemaLoadError(source, cause=TypeError('document must be a mapping'))
        return content

    def _is_url(self, text: str) -> bool:
        try:
            result = urlparse(text)
            return result.scheme in ('http', 'https')
        except ValueError:
            return False

    def _load_from_url(self, url: str) -> dict:
        logger.debug(f'Fetching {url}')
        try:
            if self._http_client:
                response = self._http_client.get(url)
            else:
                response = httpx.get(url, follow_redirects=True, timeout=self._timeout)

            response.raise_for_status()
            content_type = response.headers.get('content-type', '')
            content = response.text

            if 'yaml' in content_type or url.endswith(('.yaml', '.yml')):
                return yaml.safe_load(content)
            return json.loads(content)

        except httpx.HTTPError as e:
            raise SchemaLoadError(url, cause=e) from e
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SchemaLoadError(url, cause=e) from e

    def _load_from_file(self, file_path: str) -> dict:
        path = Path(file_path)
        if not path.is_absolute():
            path = self._base_path / path

        if not path.exists():
            raise SchemaLoadError(
                str(file_path), cause=FileNotFoundError(f'File not found: {path}')
            )

        try:
            content = path.read_text(encoding='utf-8')
            if path.suffix.lower() in ('.yaml', '.yml'):
                return yaml.safe_load(content)
            return json.loads(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SchemaLoadError(str(file_path), cause=e) from e
        except OSError as e:
            raise SchemaLoadError(str(file_path), cause=e) from e
