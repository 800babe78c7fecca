"""
A Field describes the type of a member of a composite: how many bytes it takes
and how its value is packed/unpacked at a given offset of a buffer.

Fields don't hold values: the same field instance can be used by any number
of composites and the byte order is passed in by the composite once it has
been resolved.
"""
import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from functools import partial
from typing import Dict, List, Tuple

from bitstring import BitArray, Bits

from .meta import FieldBase, Endianess
from .primitives import Primitive, get_primitive
from .resolver import merge_endianess, resolve_field
from .exceptions import (
    ByteStructException,
    PackException,
    UnpackException,
    MagicException,
    SchemaException,
    ValueRangeException,
)


_MISSING = object()


def get_member(value, name):
    '''Members can be passed as a mapping or as attributes of an object.'''
    try:
        if isinstance(value, Mapping):
            return value[name]
        return getattr(value, name)
    except (KeyError, AttributeError):
        raise PackException(f'missing value for \'{name}\'') from None


class Field(FieldBase):
    """Base class to subclass from"""

    self_describing = False

    def __init__(self, default=None, endianess=None):
        self.logger = logging.getLogger(__name__)
        self.default = default
        self.endianess = merge_endianess(endianess)

    def __repr__(self):
        return f'<{self.__class__.__name__}()>'

    @property
    def needs_endianess(self) -> bool:
        '''True if the field can't be packed without a byte order coming from outside.'''
        return not self.self_describing and self.endianess is None

    def value_from_default(self):
        return self.default

    def _get_size(self) -> int:
        raise NotImplementedError(f"method {self.__class__.__name__}._get_size() not implemented")

    size = property(
        fget=lambda self: self._get_size(),
    )

    def pack_into(self, value, buffer, offset: int, endianess: Endianess = None) -> None:
        raise NotImplementedError('you need to implement this in the subclass')

    def unpack_from(self, buffer, offset: int, endianess: Endianess = None):
        raise NotImplementedError('you need to implement this in the subclass')

    def check_endianess(self, endianess: Endianess, name=None) -> None:
        '''Raise SchemaException if the field can't be packed with the given byte order.'''
        merge_endianess(endianess, self.endianess, name=name)

    def bind(self, endianess: Endianess = None):
        '''Return the pair of functions pack_into(value, buffer, offset) and
        unpack_from(buffer, offset) using the given byte order.'''
        return (
            partial(self.pack_into, endianess=endianess),
            partial(self.unpack_from, endianess=endianess),
        )


class StructField(Field):
    """
    Simplest of the fields: mimic the behaviour of the struct module packing/unpacking
    numbers to/from bytes.

    The format is a struct format character ('H') or the name of a kind ('u16'),
    optionally prefixed with the byte order ('>H'). Passing via the "enum" argument
    some subclass of enum.Enum gives directly a representation of the integer
    value of the field itself.
    """

    PREFIXES = {
        '<': Endianess.LITTLE_ENDIAN,
        '>': Endianess.BIG_ENDIAN,
        '!': Endianess.NETWORK,
        '=': Endianess.NATIVE,
    }

    def __init__(self, format, default=0, enum=None, is_magic=False, endianess=None):
        prefix = None
        if isinstance(format, str) and format[:1] in self.PREFIXES:
            prefix = self.PREFIXES[format[0]]
            format = format[1:]
        elif isinstance(format, str) and format[:1] == '@':
            raise SchemaException(f'native alignment is not supported (format {format!r})')

        self.primitive: Primitive = get_primitive(format)
        self.enum = enum
        self.is_magic = is_magic

        if enum is not None and self.primitive.floating:
            raise SchemaException(f'enum {enum.__name__} needs an integer kind, not {self.primitive.name}')

        super().__init__(default=default, endianess=merge_endianess(prefix, endianess))

    def __repr__(self):
        order = f', {self.endianess.name}' if self.endianess else ''
        return f'<{self.__class__.__name__}({self.primitive.name}{order})>'

    def value_from_default(self):
        if not self.enum or isinstance(self.default, self.enum):
            return self.default

        return self.enum(self.default)

    def _get_size(self):
        return self.primitive.size

    def pack_into(self, value, buffer, offset, endianess=None):
        if isinstance(value, Enum):
            value = value.value

        self.primitive.pack_into(value, buffer, offset, endianess)

    def _unpack_enum(self, value: int) -> Enum:
        try:
            return self.enum(value)
        except ValueError:
            raise UnpackException(f'enum {self.enum.__name__} doesn\'t have element with value 0x{value:x} in it') from None

    def unpack_from(self, buffer, offset, endianess=None):
        value = self.primitive.unpack_from(buffer, offset, endianess)
        if self.enum:
            value = self._unpack_enum(value)

        if self.is_magic and value != self.value_from_default():
            self.logger.warning(f'the magic doesn\'t correspond: {value!r}')
            raise MagicException(f'expected magic {self.value_from_default()!r}, found {value!r}')

        return value


class StringField(Field):
    """Represent a contiguous chunk of bytes of fixed length.

    Raw bytes have no byte order, so this field keeps its own layout."""

    self_describing = True

    def __init__(self, n=None, default=None, **kw):
        if n is None and default is None:
            raise SchemaException(f"StringField must have 'n' or 'default' indicated!")

        self.length = n if n is not None else len(default)

        if default is not None and len(default) != self.length:
            raise SchemaException(f'default {default!r} is not {self.length} bytes long')

        super().__init__(default=default, **kw)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.length})>'

    def __len__(self):
        return self.length

    def value_from_default(self):
        return b'\x00' * self.length if self.default is None else self.default

    def _get_size(self):
        return self.length

    def pack_into(self, value, buffer, offset, endianess=None):
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise PackException(f'expected bytes, got {type(value).__name__}')
        if len(value) != self.length:
            raise PackException(f'you are trying to set a value with the wrong size (that is {self.length} bytes)')

        buffer[offset:offset + self.length] = value

    def unpack_from(self, buffer, offset, endianess=None):
        return bytes(buffer[offset:offset + self.length])


class ArrayField(Field):
    '''Un/Pack a fixed number of elements of the same field.

    Elements are laid out one after the other without any padding and take
    the byte order of the array unless they carry their own.'''

    def __init__(self, field, n, default=None, endianess=None):
        if not isinstance(field, Field):
            raise SchemaException(f'\'{field.__class__.__name__}\' is not a field')
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise SchemaException(f'the number of elements must be a non negative integer, not {n!r}')

        self.field = field
        self.n = n

        super().__init__(default=default, endianess=endianess)

        if self.endianess is not None:
            self.field.check_endianess(self.endianess)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.field!r}, {self.n})>'

    def __len__(self):
        return self.n

    @property
    def self_describing(self):
        return self.field.self_describing

    @property
    def needs_endianess(self):
        return self.endianess is None and self.field.needs_endianess

    def check_endianess(self, endianess, name=None):
        super().check_endianess(endianess, name=name)
        self.field.check_endianess(endianess, name=name)

    def value_from_default(self):
        if self.default is not None:
            return list(self.default)

        return [self.field.value_from_default() for _ in range(self.n)]

    def _get_size(self):
        return self.n * self.field.size

    def _check_elements(self, value) -> Sequence:
        if not isinstance(value, Sequence) or isinstance(value, str):
            raise PackException(f'expected a sequence of {self.n} elements, got {type(value).__name__}')
        if len(value) != self.n:
            raise PackException(f'expected {self.n} elements, got {len(value)}')

        return value

    def bind(self, endianess=None):
        # the elements are resolved once here, not at each call
        element_endianess = resolve_field(self.field, container_default=endianess)
        pack_element, unpack_element = self.field.bind(element_endianess)
        length = self.field.size

        def pack_into(value, buffer, offset):
            for index, element in enumerate(self._check_elements(value)):
                try:
                    pack_element(element, buffer, offset + index * length)
                except ByteStructException as e:
                    e.chain.append(str(index))
                    raise

        def unpack_from(buffer, offset):
            result = []
            for index in range(self.n):
                try:
                    result.append(unpack_element(buffer, offset + index * length))
                except ByteStructException as e:
                    e.chain.append(str(index))
                    raise

            return result

        return pack_into, unpack_from

    def pack_into(self, value, buffer, offset, endianess=None):
        self.bind(endianess)[0](value, buffer, offset)

    def unpack_from(self, buffer, offset, endianess=None):
        return self.bind(endianess)[1](buffer, offset)


class BitField(Field):
    '''Packs named sub-fields of fixed bit width into an unsigned base integer.

    The sub-fields are placed from the least significant bit to the most
    significant one in declaration order: for a 'H' base with layout
    [('x', 4), ('y', 8), ('z', 4)] we have

        | 15 ... 12 | 11 ... 4 | 3 ... 0 |
        |     z     |     y    |    x    |

    Padding must be declared like any other sub-field and the widths must
    sum up to the width of the base type. The byte order applies only to the
    base integer, not to the bits.

    A value too large for its sub-field is rejected, never truncated.
    '''

    def __init__(self, base, layout: List[Tuple[str, int]], default=None, endianess=None):
        self.primitive: Primitive = get_primitive(base)
        if not self.primitive.is_unsigned_integer:
            raise SchemaException(f'base type of a bitfield must be an unsigned integer, not {self.primitive.name}')

        self.layout = [tuple(_) for _ in layout]
        names = set()
        for name, width in self.layout:
            if isinstance(width, bool) or not isinstance(width, int) or width < 1:
                raise SchemaException(f'width of \'{name}\' must be a positive integer, not {width!r}')
            if name in names:
                raise SchemaException(f'sub-field \'{name}\' is declared twice')
            names.add(name)

        total = sum(width for _, width in self.layout)
        if total != self.primitive.bit_length:
            raise SchemaException(
                f'sub-fields take {total} bits but {self.primitive.name} has {self.primitive.bit_length}')

        super().__init__(default=default, endianess=endianess)

    def __repr__(self):
        layout = ', '.join(f'{name}:{width}' for name, width in self.layout)
        return f'<{self.__class__.__name__}({self.primitive.name} {{{layout}}})>'

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.layout]

    @property
    def bit_length(self) -> int:
        return self.primitive.bit_length

    def value_from_default(self):
        if self.default is not None:
            return dict(self.default)

        return {name: 0 for name in self.names}

    def _get_size(self):
        return self.primitive.size

    def pack(self, values) -> int:
        '''Return the base integer obtained by packing the values of the sub-fields.'''
        # bitstring is MSB first so we build the bits starting from the last sub-field
        bits = BitArray()
        for name, width in reversed(self.layout):
            value = get_member(values, name)
            if not isinstance(value, int):
                raise PackException(f'expected an integer, got {type(value).__name__}', chain=[name])
            try:
                bits.append(Bits(uint=value, length=width))
            except ValueError:
                raise ValueRangeException(f'{value} doesn\'t fit into {width} bits', chain=[name]) from None

        return bits.uint

    def unpack(self, raw: int) -> Dict[str, int]:
        '''Split the base integer into the values of the sub-fields.'''
        if raw < 0 or raw.bit_length() > self.bit_length:
            raise ValueRangeException(f'0x{raw:x} doesn\'t fit into {self.primitive.name}')

        bits = Bits(uint=raw, length=self.bit_length)

        values = {}
        end = self.bit_length
        for name, width in self.layout:
            values[name] = bits[end - width:end].uint
            end -= width

        return values

    def pack_into(self, value, buffer, offset, endianess=None):
        self.primitive.pack_into(self.pack(value), buffer, offset, endianess)

    def unpack_from(self, buffer, offset, endianess=None):
        return self.unpack(self.primitive.unpack_from(buffer, offset, endianess))


class ChunkField(Field):
    '''Nest a Chunk inside another one.

    A chunk has always its own layout: a byte order attached to this field
    has no effect (and it's reported).'''

    self_describing = True

    def __init__(self, chunk_cls, default=_MISSING, endianess=None):
        if not hasattr(chunk_cls, '_meta'):
            raise SchemaException(f'\'{chunk_cls!r}\' is not a Chunk')

        self.chunk_cls = chunk_cls

        super().__init__(default=default, endianess=endianess)

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.chunk_cls.__name__})>'

    @property
    def composite(self):
        return self.chunk_cls._meta.composite

    def value_from_default(self):
        return self.chunk_cls() if self.default is _MISSING else self.default

    def _get_size(self):
        return self.composite.size

    def pack_into(self, value, buffer, offset, endianess=None):
        self.composite.pack_into(value, buffer, offset)

    def unpack_from(self, buffer, offset, endianess=None):
        return self.composite.unpack_from(buffer, offset)
