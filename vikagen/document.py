"""Normalized document model consumed by the code generation core.

The document model is a flattened, version-independent view of an OpenAPI
document: a name-keyed map of raw schema definitions (with their ``$ref``
pointers left untouched) and a list of operations whose parameter, request
body and response references have already been followed.

Swagger 2.0 documents are converted on the way in so the core only ever sees
``#/components/schemas/...`` pointers.
"""

import copy
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from vikagen.exceptions import SchemaLoadError, SchemaReferenceError

logger = logging.getLogger(__name__)

__all__ = [
    'DocumentModel',
    'RawOperation',
    'RawParameter',
    'RawRequestBody',
    'RawResponse',
    'HTTP_METHODS',
    'SCHEMA_REF_PREFIX',
]

HTTP_METHODS = ['get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace']

SCHEMA_REF_PREFIX = '#/components/schemas/'
SWAGGER_REF_PREFIX = '#/definitions/'
SWAGGER_PARAMETER_PREFIX = '#/parameters/'

# Content types that should be treated as JSON
JSON_CONTENT_TYPES = {'application/json', 'text/json'}

# Keys of a Swagger 2.0 non-body parameter that describe its schema
_SWAGGER_SCHEMA_KEYS = (
    'type',
    'format',
    'items',
    'enum',
    'default',
    'minimum',
    'maximum',
    'pattern',
    'minLength',
    'maxLength',
)


class RawParameter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: Literal['path', 'query', 'header', 'cookie'] = Field(alias='in')
    required: bool = False
    schema_: dict[str, Any] = Field(default_factory=dict, alias='schema')
    description: str | None = None
    style: str | None = None
    explode: bool | None = None


class RawRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content_type: str
    schema_: dict[str, Any] | None = Field(None, alias='schema')
    required: bool = False
    description: str | None = None


class RawResponse(BaseModel):
    """A single declared response of an operation.

    Attributes:
        status: The status key as written in the document ('200', '4XX', 'default').
        content_type: The selected media type, or None for an empty response.
        schema_: The raw schema of the selected media type, if any.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: str
    content_type: str | None = None
    schema_: dict[str, Any] | None = Field(None, alias='schema')
    description: str | None = None


class RawOperation(BaseModel):
    method: str
    path: str
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    deprecated: bool = False
    tags: list[str] = Field(default_factory=list)
    parameters: list[RawParameter] = Field(default_factory=list)
    request_body: RawRequestBody | None = None
    responses: list[RawResponse] = Field(default_factory=list)


class DocumentModel(BaseModel):
    """The normalized input of the code generation core."""

    title: str = 'API'
    version: str = ''
    tags: list[str] = Field(default_factory=list)
    schemas: dict[str, dict[str, Any]] = Field(default_factory=dict)
    operations: list[RawOperation] = Field(default_factory=list)

    @classmethod
    def from_openapi(cls, data: dict[str, Any]) -> 'DocumentModel':
        """Normalize a parsed OpenAPI 3.x or Swagger 2.0 document.

        Args:
            data: The parsed document (JSON or YAML already decoded).

        Returns:
            The normalized document model.

        Raises:
            SchemaLoadError: If the data is not an OpenAPI document.
            SchemaReferenceError: If a parameter, request body or response
                reference points at a missing component.
        """
        if not isinstance(data, dict):
            raise SchemaLoadError('<document>', TypeError('document must be a mapping'))

        if str(data.get('swagger', '')).startswith('2'):
            data = _upgrade_swagger(data)
        elif 'openapi' not in data:
            raise SchemaLoadError(
                '<document>', ValueError("missing 'openapi' or 'swagger' version field")
            )

        normalizer = _Normalizer(data)
        info = data.get('info') or {}

        return cls(
            title=info.get('title') or 'API',
            version=str(info.get('version') or ''),
            tags=normalizer.tags(),
            schemas=dict((data.get('components') or {}).get('schemas') or {}),
            operations=normalizer.operations(),
        )


def _is_json(content_type: str) -> bool:
    return content_type in JSON_CONTENT_TYPES or content_type.endswith('+json')


def _select_content(content: dict[str, Any]) -> tuple[str, dict[str, Any]] | None:
    """Pick the media type to generate code for, preferring JSON."""
    if not content:
        return None
    if 'application/json' in content:
        return 'application/json', content['application/json'] or {}
    for content_type, media in content.items():
        if _is_json(content_type):
            return content_type, media or {}
    if '*/*' in content:
        return '*/*', content['*/*'] or {}
    content_type = next(iter(content))
    return content_type, content[content_type] or {}


class _Normalizer:
    def __init__(self, data: dict[str, Any]):
        self.data = data
        self.components = data.get('components') or {}

    def tags(self) -> list[str]:
        tags = [tag['name'] for tag in self.data.get('tags') or [] if 'name' in tag]
        for _, _, operation in self._iter_operations():
            for tag in operation.get('tags') or []:
                if tag not in tags:
                    tags.append(tag)
        return tags

    def operations(self) -> list[RawOperation]:
        operations = []
        for path, method, operation in self._iter_operations():
            path_item = self.data['paths'][path]
            operations.append(self._operation(path, method, operation, path_item))
        return operations

    def _iter_operations(self):
        for path, path_item in (self.data.get('paths') or {}).items():
            if not isinstance(path_item, dict):
                continue
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if isinstance(operation, dict):
                    yield path, method, operation

    def _operation(
        self,
        path: str,
        method: str,
        operation: dict[str, Any],
        path_item: dict[str, Any],
    ) -> RawOperation:
        return RawOperation(
            method=method.upper(),
            path=path,
            operation_id=operation.get('operationId'),
            summary=operation.get('summary'),
            description=operation.get('description'),
            deprecated=bool(operation.get('deprecated', False)),
            tags=list(operation.get('tags') or []),
            parameters=self._parameters(
                path_item.get('parameters') or [], operation.get('parameters') or []
            ),
            request_body=self._request_body(operation.get('requestBody')),
            responses=self._responses(operation.get('responses') or {}),
        )

    def _parameters(
        self, path_level: list[dict[str, Any]], operation_level: list[dict[str, Any]]
    ) -> list[RawParameter]:
        merged: dict[tuple[str, str], dict[str, Any]] = {}
        for raw in [*path_level, *operation_level]:
            parameter = self._follow(raw, 'parameters')
            merged[(parameter['name'], parameter['in'])] = parameter

        parameters = []
        for parameter in merged.values():
            if parameter['in'] == 'cookie':
                logger.debug(f"Skipping cookie parameter '{parameter['name']}'")
                continue
            if 'schema' not in parameter and 'content' in parameter:
                selected = _select_content(parameter['content'])
                parameter = {**parameter, 'schema': selected[1].get('schema', {}) if selected else {}}
            parameters.append(RawParameter.model_validate(parameter))
        return parameters

    def _request_body(self, raw: dict[str, Any] | None) -> RawRequestBody | None:
        if raw is None:
            return None
        body = self._follow(raw, 'requestBodies')
        selected = _select_content(body.get('content') or {})
        if selected is None:
            return None
        content_type, media = selected
        return RawRequestBody(
            content_type=content_type,
            schema_=media.get('schema'),
            required=bool(body.get('required', False)),
            description=body.get('description'),
        )

    def _responses(self, raw: dict[str, Any]) -> list[RawResponse]:
        responses = []
        for status, response_or_ref in raw.items():
            response = self._follow(response_or_ref, 'responses')
            selected = _select_content(response.get('content') or {})
            content_type, schema = None, None
            if selected is not None:
                content_type, media = selected
                schema = media.get('schema')
                if not _is_json(content_type) and content_type != '*/*':
                    logger.debug(
                        f'Response {status} uses non-JSON content type {content_type}'
                    )
            responses.append(
                RawResponse(
                    status=str(status),
                    content_type=content_type,
                    schema_=schema,
                    description=response.get('description'),
                )
            )
        return responses

    def _follow(self, raw: dict[str, Any], section: str) -> dict[str, Any]:
        """Follow ``#/components/<section>/X`` references until an object is found."""
        seen: list[str] = []
        current = raw
        while isinstance(current, dict) and '$ref' in current:
            ref = current['$ref']
            prefix = f'#/components/{section}/'
            if ref in seen:
                raise SchemaReferenceError(ref, 'Circular component reference', chain=seen)
            seen.append(ref)
            if not ref.startswith(prefix):
                raise SchemaReferenceError(
                    ref, f'Expected a reference into #/components/{section}', chain=seen
                )
            name = ref[len(prefix) :]
            target = (self.components.get(section) or {}).get(name)
            if target is None:
                raise SchemaReferenceError(
                    ref, f"Component '{name}' not found in {section}", chain=seen
                )
            current = target
        return current


def _rewrite_refs(value: Any) -> Any:
    if isinstance(value, dict):
        rewritten = {}
        for key, item in value.items():
            if key == '$ref' and isinstance(item, str) and item.startswith(SWAGGER_REF_PREFIX):
                rewritten[key] = SCHEMA_REF_PREFIX + item[len(SWAGGER_REF_PREFIX) :]
            else:
                rewritten[key] = _rewrite_refs(item)
        return rewritten
    if isinstance(value, list):
        return [_rewrite_refs(item) for item in value]
    return value


def _upgrade_swagger(data: dict[str, Any]) -> dict[str, Any]:
    """Convert the parts of a Swagger 2.0 document the core needs to OpenAPI 3."""
    data = _rewrite_refs(copy.deepcopy(data))
    consumes = data.get('consumes') or ['application/json']
    produces = data.get('produces') or ['application/json']

    components: dict[str, Any] = {
        'schemas': data.get('definitions') or {},
        'parameters': {},
        'responses': {},
    }
    shared = data.get('parameters') or {}
    for name, parameter in shared.items():
        if parameter.get('in') not in ('body', 'formData'):
            components['parameters'][name] = _upgrade_parameter(parameter)
    for name, response in (data.get('responses') or {}).items():
        components['responses'][name] = _upgrade_response(response, produces)

    paths: dict[str, Any] = {}
    for path, path_item in (data.get('paths') or {}).items():
        new_item: dict[str, Any] = {}
        path_parameters = [
            _resolve_parameter(p, shared) for p in path_item.get('parameters') or []
        ]
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue
            operation_parameters = [
                _resolve_parameter(p, shared) for p in operation.get('parameters') or []
            ]
            new_item[method] = _upgrade_operation(
                operation,
                [*path_parameters, *operation_parameters],
                operation.get('consumes') or consumes,
                operation.get('produces') or produces,
            )
        paths[path] = new_item

    return {
        'openapi': '3.0.0',
        'info': data.get('info') or {},
        'tags': data.get('tags') or [],
        'paths': paths,
        'components': components,
    }


def _resolve_parameter(parameter: dict[str, Any], shared: dict[str, Any]) -> dict[str, Any]:
    """Inline a ``#/parameters/X`` reference so its location is known."""
    ref = parameter.get('$ref')
    if isinstance(ref, str) and ref.startswith(SWAGGER_PARAMETER_PREFIX):
        target = shared.get(ref[len(SWAGGER_PARAMETER_PREFIX) :])
        if isinstance(target, dict):
            return target
    return parameter


def _parameter_key(parameter: dict[str, Any]) -> tuple[str, str]:
    if '$ref' in parameter:
        return '$ref', parameter['$ref']
    return parameter['name'], parameter['in']


def _upgrade_parameter(parameter: dict[str, Any]) -> dict[str, Any]:
    if '$ref' in parameter:
        return {'$ref': parameter['$ref'].replace('#/parameters/', '#/components/parameters/')}
    schema = {key: parameter[key] for key in _SWAGGER_SCHEMA_KEYS if key in parameter}
    upgraded = {
        'name': parameter['name'],
        'in': parameter['in'],
        'required': parameter.get('required', False),
        'schema': schema,
    }
    if parameter.get('description'):
        upgraded['description'] = parameter['description']
    if parameter.get('collectionFormat') == 'multi':
        upgraded['explode'] = True
    return upgraded


def _upgrade_response(response: dict[str, Any], produces: list[str]) -> dict[str, Any]:
    if '$ref' in response:
        return {'$ref': response['$ref'].replace('#/responses/', '#/components/responses/')}
    upgraded = {'description': response.get('description', '')}
    if 'schema' in response:
        upgraded['content'] = {produces[0]: {'schema': response['schema']}}
    return upgraded


def _upgrade_operation(
    operation: dict[str, Any],
    parameters: list[dict[str, Any]],
    consumes: list[str],
    produces: list[str],
) -> dict[str, Any]:
    """Upgrade one operation.

    ``parameters`` are the path-level parameters followed by the operation's
    own, with local references already inlined; later entries win.
    """
    upgraded = {
        key: operation[key]
        for key in ('operationId', 'summary', 'description', 'deprecated', 'tags')
        if key in operation
    }

    merged = {_parameter_key(parameter): parameter for parameter in parameters}

    upgraded_parameters = []
    form_properties: dict[str, Any] = {}
    form_required: list[str] = []
    for parameter in merged.values():
        location = parameter.get('in')
        if location == 'body':
            upgraded['requestBody'] = {
                'required': parameter.get('required', False),
                'content': {consumes[0]: {'schema': parameter.get('schema') or {}}},
            }
        elif location == 'formData':
            form_properties[parameter['name']] = {
                key: parameter[key] for key in _SWAGGER_SCHEMA_KEYS if key in parameter
            }
            if parameter.get('required'):
                form_required.append(parameter['name'])
        else:
            upgraded_parameters.append(_upgrade_parameter(parameter))

    if form_properties and 'requestBody' not in upgraded:
        content_type = (
            'multipart/form-data'
            if 'multipart/form-data' in consumes
            else 'application/x-www-form-urlencoded'
        )
        schema: dict[str, Any] = {'type': 'object', 'properties': form_properties}
        if form_required:
            schema['required'] = form_required
        upgraded['requestBody'] = {'content': {content_type: {'schema': schema}}}

    if upgraded_parameters:
        upgraded['parameters'] = upgraded_parameters

    upgraded['responses'] = {
        str(status): _upgrade_response(response, produces)
        for status, response in (operation.get('responses') or {}).items()
    }
    return upgraded
