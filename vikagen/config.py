"""Configuration models and loading for vikagen.

The code generation core only reads :class:`GenerationOptions`. Everything
else here (documents, file discovery, environment expansion) serves the
command line front end.
"""

import json
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from vikagen.exceptions import ConfigurationError

DEFAULT_FILENAMES = ['vikagen.yaml', 'vikagen.yml', 'vikagen.json']

_ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}')


class NamingConvention(str, Enum):
    PASCAL_CASE = 'PascalCase'
    CAMEL_CASE = 'camelCase'
    SNAKE_CASE = 'snake_case'
    KEBAB_CASE = 'kebab-case'


class HeaderStrategy(str, Enum):
    """How generated client functions obtain request headers."""

    BEARER_TOKEN = 'bearerToken'
    FIXED = 'fixed'
    CONSUMER_INJECTED = 'consumerInjected'


class ModulesConfig(BaseModel):
    """Which modules (OpenAPI tags) to generate."""

    ignore: list[str] = Field(
        default_factory=list, description='Tags or module ids to skip.'
    )
    selected: list[str] = Field(
        default_factory=list,
        description='Tags or module ids to generate. Empty means all modules.',
    )


class GenerationOptions(BaseModel):
    """Options recognized by the code generation core."""

    naming: NamingConvention = Field(
        NamingConvention.PASCAL_CASE,
        description='Naming convention for emitted schema names.',
    )

    header_strategy: HeaderStrategy = Field(
        HeaderStrategy.CONSUMER_INJECTED,
        description='Auth header scaffolding of the generated client functions.',
    )

    fixed_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent with every request when header_strategy is 'fixed'.",
    )

    modules: ModulesConfig = Field(default_factory=ModulesConfig)

    common_module: str = Field(
        'common', description='Directory name of the shared (common) module.'
    )

    include_unused_schemas: bool = Field(
        False,
        description='Emit schemas no operation uses into the common module.',
    )

    max_workers: int | None = Field(
        None,
        ge=1,
        description='Emit modules concurrently with this many worker threads.',
    )


class DocumentConfig(GenerationOptions):
    """Represents a single document to be processed."""

    source: str = Field(..., description='Path or URL to the OpenAPI document.')

    output: str = Field(..., description='Output directory for the generated code.')


class CodegenConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='VIKAGEN_')

    documents: list[DocumentConfig] = Field(
        ..., description='List of OpenAPI documents to process.'
    )


def _expand_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in a string."""

    def replace(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        if name in os.environ:
            return os.environ[name]
        if default is not None:
            return default
        return match.group(0)

    return _ENV_VAR_PATTERN.sub(replace, value)


def _expand_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return _expand_env_vars(data)
    if isinstance(data, dict):
        return {key: _expand_env_vars_recursive(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars_recursive(item) for item in data]
    return data


def load_yaml(path: str | Path) -> dict:
    return yaml.safe_load(Path(path).read_text())


def load_json(path: str | Path) -> dict:
    return json.loads(Path(path).read_text())


def _load_file(path: Path) -> dict:
    if path.suffix == '.json':
        return load_json(path)
    return load_yaml(path)


def _validate(data: Any, config_path: str) -> CodegenConfig:
    try:
        return CodegenConfig.model_validate(_expand_env_vars_recursive(data))
    except ValidationError as e:
        raise ConfigurationError(
            f'Invalid configuration: {e.error_count()} validation error(s)\n{e}',
            config_path=config_path,
        ) from e


def get_config(path: str | None = None) -> CodegenConfig:
    """Load configuration from a file or from the current directory.

    Args:
        path: Optional explicit YAML or JSON configuration file.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If no configuration is found or it is invalid.
    """
    if path:
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigurationError('Configuration file not found', config_path=path)
        return _validate(_load_file(config_file), path)

    cwd = Path(os.getcwd())

    for filename in DEFAULT_FILENAMES:
        config_file = cwd / filename
        if config_file.exists():
            return _validate(_load_file(config_file), str(config_file))

    pyproject_file = cwd / 'pyproject.toml'

    if pyproject_file.exists():
        import tomllib

        pyproject = tomllib.loads(pyproject_file.read_text())
        tools = pyproject.get('tool', {})

        if 'vikagen' in tools:
            return _validate(tools['vikagen'], str(pyproject_file))

    raise ConfigurationError(
        'Configuration not found. Create vikagen.yaml or add [tool.vikagen] '
        'to pyproject.toml'
    )


def create_default_config() -> dict:
    """Return a minimal configuration dictionary suitable for a new project."""
    return {
        'documents': [
            {
                'source': './openapi.yaml',
                'output': './src/api',
                'naming': NamingConvention.PASCAL_CASE.value,
                'header_strategy': HeaderStrategy.CONSUMER_INJECTED.value,
            }
        ]
    }
