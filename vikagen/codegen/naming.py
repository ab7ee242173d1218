import logging
import re
import unicodedata

from vikagen.config import NamingConvention
from vikagen.exceptions import NamingCollisionError

logger = logging.getLogger(__name__)

__all__ = (
    'NameAllocator',
    'function_name',
    'module_id',
    'sanitize_identifier',
    'to_camel_case',
    'to_kebab_case',
    'to_pascal_case',
    'to_snake_case',
    'type_name',
    'validator_name',
)

# Words that cannot be used as a TypeScript declaration name
TS_RESERVED = frozenset(
    {
        'any', 'Array', 'as', 'boolean', 'break', 'case', 'catch', 'class',
        'const', 'continue', 'Date', 'debugger', 'default', 'delete', 'do',
        'else', 'enum', 'export', 'extends', 'false', 'finally', 'for',
        'function', 'if', 'implements', 'import', 'in', 'instanceof',
        'interface', 'let', 'never', 'new', 'null', 'number', 'object',
        'package', 'private', 'Promise', 'protected', 'public', 'Record',
        'return', 'static', 'string', 'super', 'switch', 'symbol', 'this',
        'throw', 'true', 'try', 'type', 'typeof', 'undefined', 'unknown',
        'var', 'void', 'while', 'with', 'yield', 'z',
    }
)

_WORD_PATTERN = re.compile(r'[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+')


def capitalize(input_string):
    if not input_string:
        return ''
    return input_string[0].upper() + input_string[1:]


def remove_accents(input_str):
    nfkd_form = unicodedata.normalize('NFKD', input_str)
    return ''.join(c for c in nfkd_form if not unicodedata.combining(c))


def split_words(name: str) -> list[str]:
    """Split a name on separators and camelCase boundaries.

    >>> split_words('HTTPServer_config-v2')
    ['HTTP', 'Server', 'config', 'v', '2']
    """
    return _WORD_PATTERN.findall(remove_accents(name))


def to_pascal_case(name: str) -> str:
    return ''.join(capitalize(word) for word in split_words(name))


def to_camel_case(name: str) -> str:
    words = split_words(name)
    if not words:
        return ''
    first = words[0].lower() if words[0].isupper() else words[0][0].lower() + words[0][1:]
    return first + ''.join(capitalize(word) for word in words[1:])


def to_snake_case(name: str) -> str:
    return '_'.join(word.lower() for word in split_words(name))


def to_kebab_case(name: str) -> str:
    return '-'.join(word.lower() for word in split_words(name))


def sanitize_identifier(name: str) -> str:
    """Make ``name`` usable as a TypeScript declaration name.

    - Remove characters that are not letters, digits, ``_`` or ``$``
    - Ensure it doesn't start with a digit
    - Suffix reserved words with an underscore
    """
    sanitized = re.sub(r'[^A-Za-z0-9_$]', '', remove_accents(name))
    if not sanitized:
        return 'Unnamed'
    if sanitized[0].isdigit():
        sanitized = '_' + sanitized
    if sanitized in TS_RESERVED:
        sanitized += '_'
    return sanitized


def type_name(hint: str, convention: NamingConvention) -> str:
    """Apply the naming convention to a declaration name.

    kebab-case is not a valid identifier style, so declarations fall back to
    snake_case under it. Only module directories use the dashes.
    """
    if convention == NamingConvention.PASCAL_CASE:
        name = to_pascal_case(hint)
    elif convention == NamingConvention.CAMEL_CASE:
        name = to_camel_case(hint)
    else:
        name = to_snake_case(hint)
    return sanitize_identifier(name)


def validator_name(name: str, convention: NamingConvention) -> str:
    if convention in (NamingConvention.SNAKE_CASE, NamingConvention.KEBAB_CASE):
        return f'{name}_schema'
    return f'{name}Schema'


def module_id(tag: str, convention: NamingConvention) -> str:
    """Return the directory name of the module generated for ``tag``."""
    if convention == NamingConvention.KEBAB_CASE:
        name = to_kebab_case(tag)
    elif convention == NamingConvention.SNAKE_CASE:
        name = to_snake_case(tag)
    else:
        name = to_camel_case(tag)
    return name or 'default'


def function_name(operation_id: str | None, method: str, path: str) -> str:
    """Return the client function name of an operation.

    Operations without an ``operationId`` are named after their method and
    the literal segments of their path, ``GET /pets/{id}/photos`` becoming
    ``getPetsPhotos``.
    """
    if operation_id:
        name = to_camel_case(operation_id)
    else:
        segments = [
            segment
            for segment in path.strip('/').split('/')
            if segment and not segment.startswith('{')
        ]
        name = method.lower() + ''.join(to_pascal_case(s) for s in segments)
    return sanitize_identifier(name)


class NameAllocator:
    """Hands out unique declaration names.

    A type and its validator are reserved together so that neither can
    clash with another declaration. Collisions are resolved by appending
    ``2``, ``3``, ... to the requested name; callers are expected to request
    names in a deterministic order.
    """

    def __init__(self, convention: NamingConvention, reserved=()):
        self.convention = convention
        self._taken: set[str] = set(reserved)

    def __contains__(self, name: str) -> bool:
        return name in self._taken

    def fork(self) -> 'NameAllocator':
        """Return an allocator that starts with every name taken here."""
        return NameAllocator(self.convention, reserved=self._taken)

    def allocate(
        self, hint: str, owner: str | None = None, with_validator: bool = True
    ) -> str:
        """Reserve a name derived from ``hint``.

        Args:
            hint: The preferred name before the convention is applied.
            owner: The id of the declaration, used in log messages.
            with_validator: Also reserve the matching validator name.

        Returns:
            The reserved name.
        """
        base = type_name(hint, self.convention)
        try:
            return self._reserve(base, owner, with_validator)
        except NamingCollisionError as e:
            logger.info(e.message)
            return e.resolved

    def allocate_exact(self, name: str, owner: str | None = None) -> str:
        """Reserve ``name`` as-is (no convention), suffixing it on collision."""
        try:
            return self._reserve(sanitize_identifier(name), owner, False)
        except NamingCollisionError as e:
            logger.info(e.message)
            return e.resolved

    def _is_free(self, name: str, with_validator: bool) -> bool:
        if name in self._taken:
            return False
        return not with_validator or validator_name(name, self.convention) not in self._taken

    def _reserve(self, base: str, owner: str | None, with_validator: bool) -> str:
        candidate = base
        counter = 2
        while not self._is_free(candidate, with_validator):
            candidate = f'{base}{counter}'
            counter += 1

        self._taken.add(candidate)
        if with_validator:
            self._taken.add(validator_name(candidate, self.convention))

        if candidate != base:
            raise NamingCollisionError(base, candidate, owner)
        return candidate
