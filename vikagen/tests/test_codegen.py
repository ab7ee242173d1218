"""End-to-end tests of code generation from OpenAPI documents."""

import copy
import logging
from unittest.mock import MagicMock

import pytest

from vikagen.codegen import Codegen
from vikagen.config import DocumentConfig, GenerationOptions, HeaderStrategy, NamingConvention
from vikagen.document import DocumentModel

from .fixtures import (
    DEFAULT_ONLY_SPEC,
    DISCRIMINATED_UNION_SPEC,
    DUPLICATE_ENUM_SPEC,
    MINIMAL_OPENAPI_SPEC,
    MUTUAL_RECURSION_SPEC,
    PETSTORE_SPEC,
    RECURSIVE_SPEC,
    SHARED_SCHEMA_SPEC,
    ref,
)


def generate(spec: dict, **options):
    return Codegen(DocumentModel.from_openapi(spec), GenerationOptions(**options)).generate()


class TestManifest:
    """Test the set of generated files."""

    def test_file_layout(self):
        """Test one directory per module plus the shared files."""
        result = generate(SHARED_SCHEMA_SPEC)
        assert result.shared.paths() == [
            'common/types.ts',
            'common/schemas.ts',
            'common/index.ts',
            'runtime.ts',
        ]
        assert [m.module for m in result.modules] == ['orders', 'users']
        assert result.modules[1].paths() == [
            'users/types.ts',
            'users/schemas.ts',
            'users/api.ts',
            'users/index.ts',
        ]

    def test_document_without_operations(self):
        """Test that a document without operations still gets the shared files."""
        result = generate(MINIMAL_OPENAPI_SPEC)
        assert result.modules == ()
        assert 'export {};' in result.get('common/types.ts')

    def test_missing_file(self):
        """Test looking up a file that was not generated."""
        with pytest.raises(KeyError):
            generate(MINIMAL_OPENAPI_SPEC).get('pets/types.ts')

    def test_generation_is_deterministic(self):
        """Test that generating twice yields identical output."""
        document = DocumentModel.from_openapi(PETSTORE_SPEC)
        first = Codegen(document).generate()
        second = Codegen(document).generate()
        assert first == second

    def test_schema_order_does_not_matter(self):
        """Test that the declaration order of schemas does not change the output."""
        spec = copy.deepcopy(SHARED_SCHEMA_SPEC)
        schemas = spec['components']['schemas']
        spec['components']['schemas'] = dict(reversed(list(schemas.items())))
        assert generate(spec) == generate(SHARED_SCHEMA_SPEC)

    def test_concurrent_emission(self):
        """Test that emitting modules on worker threads gives the same result."""
        assert generate(SHARED_SCHEMA_SPEC, max_workers=4) == generate(SHARED_SCHEMA_SPEC)

    def test_build_is_cached(self):
        """Test that the IR is built once per generator."""
        codegen = Codegen(DocumentModel.from_openapi(PETSTORE_SPEC))
        assert codegen.build() is codegen.build()

    def test_modules(self):
        """Test the module summary."""
        codegen = Codegen(DocumentModel.from_openapi(PETSTORE_SPEC))
        [info] = codegen.modules()
        assert (info.id, info.tag, info.operation_count, info.schema_count) == (
            'pets',
            'pets',
            3,
            4,
        )

    def test_from_config(self):
        """Test building a generator from a document configuration."""
        loader = MagicMock()
        loader.load.return_value = DocumentModel.from_openapi(PETSTORE_SPEC)
        config = DocumentConfig(
            source='./openapi.yaml',
            output='./src/api',
            naming=NamingConvention.SNAKE_CASE,
            header_strategy=HeaderStrategy.FIXED,
        )

        codegen = Codegen.from_config(config, loader=loader)

        loader.load.assert_called_once_with('./openapi.yaml')
        assert codegen.options.naming == NamingConvention.SNAKE_CASE
        assert codegen.options.header_strategy == HeaderStrategy.FIXED
        assert not hasattr(codegen.options, 'source')


class TestPetstore:
    """Test the generated petstore client."""

    @pytest.fixture(scope='class')
    def result(self):
        return generate(PETSTORE_SPEC)

    def test_types(self, result):
        """Test the types file."""
        assert result.get('pets/types.ts') == (
            '// This file is generated by vikagen. Do not edit it by hand.\n'
            '\n'
            'export interface Error {\n'
            '  /** @format int32 */\n'
            '  code: number;\n'
            '  message: string;\n'
            '}\n'
            '\n'
            'export interface NewPet {\n'
            '  name: string;\n'
            '  tag?: string;\n'
            '}\n'
            '\n'
            'export interface Pet {\n'
            '  /** @format int64 */\n'
            '  id: number;\n'
            '  name: string;\n'
            '  tag?: string | null;\n'
            '  status?: PetStatus;\n'
            '}\n'
            '\n'
            'export type PetStatus = "available" | "pending" | "sold";\n'
        )

    def test_schemas(self, result):
        """Test the validators file."""
        content = result.get('pets/schemas.ts')
        assert content.startswith(
            '// This file is generated by vikagen. Do not edit it by hand.\n'
            '\n'
            'import { z } from "zod";\n'
            '\n'
        )
        assert (
            'export const PetSchema = z.object({\n'
            '  id: z.number().int(),\n'
            '  name: z.string(),\n'
            '  tag: z.string().nullable().optional(),\n'
            '  status: PetStatusSchema.optional(),\n'
            '});\n'
        ) in content
        assert 'export const PetStatusSchema = z.enum(["available", "pending", "sold"]);' in content
        assert content.index('const PetStatusSchema =') < content.index('const PetSchema =')

    def test_api_imports(self, result):
        """Test the imports of the client file."""
        assert result.get('pets/api.ts').startswith(
            '// This file is generated by vikagen. Do not edit it by hand.\n'
            '\n'
            'import { z } from "zod";\n'
            'import type { Error, NewPet, Pet, PetStatus } from "./types";\n'
            'import { ErrorSchema, PetSchema } from "./schemas";\n'
            'import { type RequestFn, type RequestOptions, serializeQuery } from "../runtime";\n'
            '\n'
        )

    def test_list_operation(self, result):
        """Test a query operation returning an array."""
        content = result.get('pets/api.ts')
        assert (
            'export interface ListPetsParams {\n'
            '  /**\n'
            '   * How many items to return\n'
            '   * @format int32\n'
            '   */\n'
            '  limit?: number;\n'
            '  status?: PetStatus;\n'
            '}\n'
        ) in content
        assert (
            'export type ListPetsResult =\n'
            '  | { status: 200; data: Array<Pet> }\n'
            '  | { status: "default"; code: number; data: Error };\n'
        ) in content
        assert 'params: ListPetsParams = {},' in content
        assert 'return { status: 200, data: z.array(PetSchema).parse(response.body) };' in content
        assert (
            'return { status: "default", code: response.status, '
            'data: ErrorSchema.parse(response.body) };'
        ) in content

    def test_create_operation(self, result):
        """Test an operation with a required body."""
        content = result.get('pets/api.ts')
        assert 'export interface CreatePetParams {\n  body: NewPet;\n}\n' in content
        assert 'params: CreatePetParams,\n' in content
        assert '    method: "POST",\n' in content
        assert '    body: params.body,\n    contentType: "application/json",\n' in content

    def test_path_operation(self, result):
        """Test an operation with a path parameter and an empty error response."""
        content = result.get('pets/api.ts')
        assert 'url: `/pets/${encodeURIComponent(String(params.petId))}`,' in content
        assert (
            'export type ShowPetByIdResult =\n'
            '  | { status: 200; data: Pet }\n'
            '  | { status: 404; data: undefined }\n'
            '  | { status: "default"; code: number; data: Error };\n'
        ) in content
        assert '/** Info for a specific pet */\nexport async function showPetById(' in content

    def test_index(self, result):
        """Test the module barrel file."""
        assert result.get('pets/index.ts') == (
            '// This file is generated by vikagen. Do not edit it by hand.\n'
            '\n'
            'export * from "./types";\n'
            'export * from "./schemas";\n'
            'export * from "./api";\n'
        )

    def test_common_is_empty(self, result):
        """Test that a single-module document has an empty common module."""
        assert result.get('common/types.ts') == (
            '// This file is generated by vikagen. Do not edit it by hand.\n\nexport {};\n'
        )


class TestSharedSchemas:
    """Test generation of schemas shared between modules."""

    def test_shared_schema_declared_once(self):
        """Test that Address is declared in common only."""
        result = generate(SHARED_SCHEMA_SPEC)
        declaring = [
            f.path for f in result.files() if 'export interface Address {' in f.content
        ]
        assert declaring == ['common/types.ts']
        assert 'export const AddressSchema = z.object({' in result.get('common/schemas.ts')

    def test_modules_import_from_common(self):
        """Test that modules import shared declarations from common."""
        result = generate(SHARED_SCHEMA_SPEC)
        types = result.get('users/types.ts')
        schemas = result.get('users/schemas.ts')
        assert 'import type { Address } from "../common/types";' in types
        assert '  address?: Address;\n' in types
        assert 'import { AddressSchema } from "../common/schemas";' in schemas
        assert '  shippingAddress: AddressSchema.optional(),\n' in result.get('orders/schemas.ts')

    def test_naming_convention_in_paths(self):
        """Test that module directories follow the naming convention."""
        spec = copy.deepcopy(SHARED_SCHEMA_SPEC)
        spec['paths']['/users/{userId}']['get']['tags'] = ['User Accounts']
        result = generate(spec, naming=NamingConvention.KEBAB_CASE)
        assert 'user-accounts/api.ts' in [f.path for f in result.files()]
        assert 'export interface user {' in result.get('user-accounts/types.ts')


class TestRecursion:
    """Test generation of recursive schemas."""

    def test_self_reference(self):
        """Test a self-referencing schema."""
        result = generate(RECURSIVE_SPEC)
        assert (
            'export interface Node {\n'
            '  id: string;\n'
            '  children?: Array<Node>;\n'
            '}\n'
        ) in result.get('tree/types.ts')
        assert result.get('tree/schemas.ts') == (
            '// This file is generated by vikagen. Do not edit it by hand.\n'
            '\n'
            'import { z } from "zod";\n'
            'import type { Node } from "./types";\n'
            '\n'
            '/** Validates Node. */\n'
            'export const NodeSchema: z.ZodType<Node> = z.lazy(() =>\n'
            '  z.object({\n'
            '    id: z.string(),\n'
            '    children: z.array(z.lazy(() => NodeSchema)).optional(),\n'
            '  })\n'
            ');\n'
        )

    def test_mutual_recursion(self):
        """Test two schemas referencing each other."""
        content = generate(MUTUAL_RECURSION_SPEC).get('org/schemas.ts')
        assert 'export const ManagerSchema: z.ZodType<Manager> = z.lazy(() =>' in content
        assert 'export const EmployeeSchema: z.ZodType<Employee> = z.lazy(() =>' in content
        assert '    reports: z.array(z.lazy(() => EmployeeSchema)).optional(),\n' in content
        assert '    manager: ManagerSchema.optional(),\n' in content
        assert content.index('ManagerSchema:') < content.index('EmployeeSchema:')

    def test_empty_result_type(self):
        """Test an operation without declared default response."""
        content = generate(RECURSIVE_SPEC).get('tree/api.ts')
        assert 'export type GetTreeParams = Record<string, never>;' in content
        assert (
            'export type GetTreeResult =\n'
            '  | { status: 200; data: Node }\n'
            '  | { status: "default"; code: number; data: unknown };\n'
        ) in content


class TestDiscriminatedUnions:
    """Test generation of discriminated unions."""

    def test_discriminated_union(self):
        """Test a union of plain objects dispatched on the tag."""
        result = generate(DISCRIMINATED_UNION_SPEC)
        assert (
            'export type PaymentMethod =\n'
            '  | ({ type: "card" } & Card)\n'
            '  | ({ type: "cash" } & Cash);\n'
        ) in result.get('payments/types.ts')
        content = result.get('payments/schemas.ts')
        assert (
            'export const PaymentMethodSchema = z.discriminatedUnion("type", [\n'
            '  CardSchema.extend({ type: z.literal("card") }),\n'
            '  CashSchema.extend({ type: z.literal("cash") }),\n'
            ']);\n'
        ) in content
        assert content.index('CardSchema =') < content.index('PaymentMethodSchema =')

    def test_member_enums(self):
        """Test that single-valued tag enums are declared per member."""
        content = generate(DISCRIMINATED_UNION_SPEC).get('payments/types.ts')
        assert 'export type CardType = "card";' in content
        assert 'export type CashType = "cash";' in content

    def test_fallback_for_composed_members(self, caplog):
        """Test that unions of composed members are validated member by member."""
        spec = copy.deepcopy(DISCRIMINATED_UNION_SPEC)
        schemas = spec['components']['schemas']
        schemas['PaymentBase'] = {
            'type': 'object',
            'properties': {'id': {'type': 'string'}},
        }
        schemas['Card'] = {
            'allOf': [
                ref('PaymentBase'),
                {
                    'type': 'object',
                    'properties': {'type': {'type': 'string', 'enum': ['card']}},
                },
            ]
        }

        with caplog.at_level(logging.WARNING):
            content = generate(spec).get('payments/schemas.ts')

        assert (
            'export const PaymentMethodSchema = z.union([\n'
            '  z.object({ type: z.literal("card") }).and(CardSchema),\n'
            '  z.object({ type: z.literal("cash") }).and(CashSchema),\n'
            ']);\n'
        ) in content
        assert "tries each member instead of dispatching on 'type'" in caplog.text


class TestEnums:
    """Test generation of deduplicated enums."""

    def test_enum_declared_once(self):
        """Test that an enum shared by two modules is declared once in common."""
        result = generate(DUPLICATE_ENUM_SPEC)
        declarations = sum(
            f.content.count('export type OrderStatus =') for f in result.files()
        )
        assert declarations == 1
        assert 'export type OrderStatus = "available" | "pending" | "sold";' in result.get(
            'common/types.ts'
        )
        assert not any('PetStatus' in f.content for f in result.files())

    def test_alias_imports_canonical(self):
        """Test that the module with the duplicate references the canonical enum."""
        types = generate(DUPLICATE_ENUM_SPEC).get('pets/types.ts')
        assert 'import type { OrderStatus } from "../common/types";' in types
        assert '  status?: OrderStatus;\n' in types


class TestHeaderStrategies:
    """Test generated auth header scaffolding."""

    def test_fixed_headers(self):
        """Test that fixed headers are imported from the runtime."""
        result = generate(
            DEFAULT_ONLY_SPEC,
            header_strategy=HeaderStrategy.FIXED,
            fixed_headers={'X-Api-Key': 'secret'},
        )
        assert '  "X-Api-Key": "secret",\n' in result.get('runtime.ts')
        api = result.get('default/api.ts')
        assert 'import { FIXED_HEADERS, type RequestFn, type RequestOptions } from "../runtime";' in api
        assert '    ...FIXED_HEADERS,\n' in api

    def test_default_only_operation(self):
        """Test that a default-only operation parses the default body."""
        api = generate(DEFAULT_ONLY_SPEC).get('default/api.ts')
        assert (
            'export type PingResult =\n'
            '  | { status: "default"; code: number; data: Status };\n'
        ) in api
        assert 'data: StatusSchema.parse(response.body) };' in api
