"""
Core module: composites made of fields laid out one after the other.

A Composite is the schema object: an ordered list of fields, each one bound
once and for all to its byte order and to its offset. A Chunk is the
declarative way of building one, defining a class with fields as attributes.
"""
import logging
from typing import Dict, Iterable, List, Tuple

from .fields import Field, get_member
from .meta import MetaChunk, FieldDescriptor, Endianess
from .resolver import ResolvedField, merge_endianess, resolve
from .exceptions import (
    ByteStructException,
    BufferSizeException,
    SchemaException,
)


logger = logging.getLogger(__name__)


def _as_descriptor(obj) -> FieldDescriptor:
    if isinstance(obj, FieldDescriptor):
        return obj

    try:
        name, field, *endianess = obj
    except (TypeError, ValueError):
        raise SchemaException(f'{obj!r} is not a field declaration') from None

    if len(endianess) > 1:
        raise SchemaException(f'{obj!r} is not a field declaration')

    return FieldDescriptor(name, field, *endianess)


class Composite(Field):
    """Fields packed in declaration order without any padding.

    The byte order passed as "endianess" is the default for the fields that
    don't specify one. The composite itself is self-describing: nested in
    another composite it keeps its own layout.

        header = Composite('Header', [
            ('a', StructField('B')),
            ('b', StructField('H'), Endianess.BIG_ENDIAN),
            ('d', ArrayField(StructField('H'), 3)),
        ], endianess=Endianess.LITTLE_ENDIAN)

        header.encode({'a': 0x12, 'b': 0x3456, 'd': [1, 2, 3]})

    Decoding builds the value calling factory() with the fields as keyword
    arguments.
    """

    self_describing = True

    def __init__(self, name: str, fields: Iterable, endianess: Endianess = None, factory=dict):
        super().__init__()
        self.name = name
        self.default_endianess = merge_endianess(endianess, name=name)
        self.factory = factory

        descriptors = [_as_descriptor(_) for _ in fields]

        names = set()
        resolved: List[ResolvedField] = []
        cursor = 0
        for descriptor in descriptors:
            if not isinstance(descriptor.field, Field):
                raise SchemaException(f'{descriptor.field!r} is not a field', chain=[descriptor.name, name])
            if descriptor.name in names:
                raise SchemaException(f'field \'{descriptor.name}\' is declared twice', chain=[name])
            names.add(descriptor.name)

            try:
                order = resolve(descriptor, self.default_endianess)
                resolved_field = ResolvedField(descriptor, order, cursor)
            except SchemaException as e:
                e.chain.append(name)
                raise

            logger.debug('%s.%s at offset %d (size %d) with byte order %s',
                         name, descriptor.name, cursor, resolved_field.size, order.name if order else 'SELF')
            resolved.append(resolved_field)
            cursor += resolved_field.size

        self.fields: Tuple[ResolvedField, ...] = tuple(resolved)
        self.BYTE_LEN = cursor

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name}, {self.BYTE_LEN} bytes)>'

    def __len__(self):
        return self.BYTE_LEN

    def _get_size(self):
        return self.BYTE_LEN

    @property
    def layout(self) -> Dict[str, Tuple[int, int]]:
        return {_.name: (_.offset, _.size) for _ in self.fields}

    def value_from_default(self):
        return self.factory(**{_.name: _.field.value_from_default() for _ in self.fields})

    def pack_into(self, value, buffer, offset, endianess=None):
        '''Write the fields directly into the buffer, without any check:
        use encode_into() from outside.'''
        for resolved_field in self.fields:
            try:
                member = get_member(value, resolved_field.name)
                resolved_field.pack_into(member, buffer, offset + resolved_field.offset)
            except ByteStructException as e:
                e.chain.append(resolved_field.name)
                raise

    def unpack_from(self, buffer, offset, endianess=None):
        values = {}
        for resolved_field in self.fields:
            try:
                values[resolved_field.name] = resolved_field.unpack_from(buffer, offset + resolved_field.offset)
            except ByteStructException as e:
                e.chain.append(resolved_field.name)
                raise

        return self.factory(**values)

    def _check_buffer(self, buffer, offset):
        if offset < 0 or len(buffer) - offset < self.BYTE_LEN:
            raise BufferSizeException(
                f'{self.name} needs {self.BYTE_LEN} bytes at offset {offset}, buffer has {len(buffer)}')

    def encode(self, value) -> bytes:
        buffer = bytearray(self.BYTE_LEN)
        self.pack_into(value, buffer, 0)

        return bytes(buffer)

    def encode_into(self, value, buffer, offset: int = 0) -> None:
        '''Pack the value into buffer[offset:offset + BYTE_LEN].

        Nothing is written if the buffer is too short or the value can't be packed.'''
        self._check_buffer(buffer, offset)
        buffer[offset:offset + self.BYTE_LEN] = self.encode(value)

    def decode(self, data):
        if len(data) != self.BYTE_LEN:
            raise BufferSizeException(f'{self.name} needs exactly {self.BYTE_LEN} bytes, got {len(data)}')

        return self.unpack_from(data, 0)

    def decode_from(self, buffer, offset: int = 0):
        self._check_buffer(buffer, offset)

        return self.unpack_from(buffer, offset)


class Chunk(metaclass=MetaChunk):
    """
    Base class to declare a composite as a python class: the fields are
    attributes of the class, laid out in declaration order, and the byte
    order for the fields without one is indicated in an inner Meta class

        class Header(Chunk):
            class Meta:
                endianess = Endianess.LITTLE_ENDIAN

            a = fields.StructField('B')
            b = fields.StructField('>H')

    The layout is computed once when the class is created and exposed as
    the class attribute BYTE_LEN. Instances simply hold the values.

    Subclasses inherit the fields (and the byte order) of their parents,
    the new fields follow the inherited ones.
    """

    def __init__(self, **kwargs):
        for descriptor in self._meta.fields:
            if descriptor.name in kwargs:
                value = kwargs.pop(descriptor.name)
            else:
                value = descriptor.field.value_from_default()
            setattr(self, descriptor.name, value)

        if kwargs:
            raise TypeError(f'{self.__class__.__name__} has no field named {", ".join(kwargs)}')

    @classmethod
    def build_composite(cls) -> Composite:
        return Composite(cls.__name__, cls._meta.fields, endianess=cls._meta.endianess, factory=cls)

    def get_ordered_fields_name(self) -> List[str]:
        return [_.name for _ in self._meta.fields]

    def get_fields(self) -> List[Tuple[str, object]]:
        '''It returns a list of couples (name, value) for each field.'''
        return [(_, getattr(self, _)) for _ in self.get_ordered_fields_name()]

    def __repr__(self):
        msg = []
        for field_name, value in self.get_fields():
            msg.append('%s=%s' % (field_name, repr(value)))
        return '<%s(%s)>' % (self.__class__.__name__, ','.join(msg))

    def __str__(self):
        msg = ''
        for field_name, value in self.get_fields():
            msg += '%s: %s\n' % (field_name, repr(value))
        return msg

    def __eq__(self, other):
        if other.__class__ is not self.__class__:
            return NotImplemented

        return self.get_fields() == other.get_fields()

    @property
    def size(self):
        return self.BYTE_LEN

    @classmethod
    def layout(cls) -> Dict[str, Tuple[int, int]]:
        return cls._meta.composite.layout

    def pack(self) -> bytes:
        return self._meta.composite.encode(self)

    def pack_into(self, buffer, offset=0) -> None:
        self._meta.composite.encode_into(self, buffer, offset)

    @classmethod
    def unpack(cls, data):
        '''Build an instance from exactly BYTE_LEN bytes.'''
        return cls._meta.composite.decode(data)

    @classmethod
    def unpack_from(cls, buffer, offset=0):
        return cls._meta.composite.decode_from(buffer, offset)
