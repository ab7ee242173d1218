"""Test module ownership and common-set detection."""

from vikagen.codegen.classifier import SchemaClassifier
from vikagen.codegen.graph import ReferenceResolver
from vikagen.codegen.partition import UNUSED_OWNER, ModulePartitioner

from .fixtures import MUTUAL_RECURSION_SPEC, SHARED_SCHEMA_SPEC, ref


def build_arena(schemas: dict):
    resolver = ReferenceResolver(schemas)
    graph = resolver.resolve().graph
    return SchemaClassifier(schemas, resolver, graph).build()


class TestModulePartitioner:
    """Test the ownership fixed point."""

    def test_shared_schema_is_common(self):
        """Test that a schema reached from two modules is common."""
        partitioner = ModulePartitioner(build_arena(SHARED_SCHEMA_SPEC['components']['schemas']))
        partitioner.seed('users', ['User'])
        partitioner.seed('orders', ['Order'])
        ownership = partitioner.partition()

        assert ownership.owners('Address') == frozenset({'users', 'orders'})
        assert ownership.is_common('Address')
        assert ownership.common() == ['Address']
        assert ownership.owned_by('users') == ['User']
        assert ownership.owned_by('orders') == ['Order']

    def test_single_module(self):
        """Test that a schema used by one module only stays in that module."""
        partitioner = ModulePartitioner(build_arena(SHARED_SCHEMA_SPEC['components']['schemas']))
        partitioner.seed('users', ['User'])
        ownership = partitioner.partition()

        assert ownership.owners('Address') == frozenset({'users'})
        assert ownership.common() == []
        assert not ownership.is_owned('Order')

    def test_propagates_through_nesting(self):
        """Test that ownership reaches schemas referenced by inline shapes."""
        schemas = {
            'Address': {'type': 'object', 'properties': {'city': {'type': 'string'}}},
            'User': {
                'type': 'object',
                'properties': {
                    'profile': {
                        'type': 'object',
                        'properties': {
                            'addresses': {'type': 'array', 'items': ref('Address')},
                        },
                    }
                },
            },
            'Order': {
                'oneOf': [ref('Address'), {'type': 'string'}],
            },
        }
        partitioner = ModulePartitioner(build_arena(schemas))
        partitioner.seed('users', ['User'])
        partitioner.seed('orders', ['Order'])
        ownership = partitioner.partition()

        assert ownership.owners('User/properties/profile') == frozenset({'users'})
        assert ownership.is_common('Address')

    def test_propagates_around_cycles(self):
        """Test that the fixed point terminates on cycles and covers every member."""
        partitioner = ModulePartitioner(
            build_arena(MUTUAL_RECURSION_SPEC['components']['schemas'])
        )
        partitioner.seed('org', ['Employee'])
        partitioner.seed('hr', ['Manager'])
        ownership = partitioner.partition()

        assert ownership.owners('Employee') == frozenset({'org', 'hr'})
        assert ownership.owners('Manager') == frozenset({'org', 'hr'})

    def test_unused_schemas_skipped(self):
        """Test that unreached schemas get no owner by default."""
        partitioner = ModulePartitioner(build_arena(SHARED_SCHEMA_SPEC['components']['schemas']))
        partitioner.seed('orders', ['Order'])
        ownership = partitioner.partition()
        assert not ownership.is_owned('User')

    def test_include_unused(self):
        """Test that unreached schemas are owned by the unused pseudo-owner."""
        partitioner = ModulePartitioner(build_arena(SHARED_SCHEMA_SPEC['components']['schemas']))
        partitioner.seed('orders', ['Order'])
        ownership = partitioner.partition(include_unused=True)

        assert ownership.owners('User') == frozenset({UNUSED_OWNER})
        assert ownership.owners('Address') == frozenset({'orders', UNUSED_OWNER})
        assert ownership.is_common('Address')

    def test_unused_schema_logged(self, caplog):
        """Test that unreached schemas are reported at debug level."""
        partitioner = ModulePartitioner(build_arena(SHARED_SCHEMA_SPEC['components']['schemas']))
        partitioner.seed('orders', ['Order'])
        with caplog.at_level('DEBUG', logger='vikagen.codegen.partition'):
            partitioner.partition()
        assert "Schema 'User' is not used by any operation" in caplog.text
