import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

import pytest

from bytestruct.core import Chunk, Composite
from bytestruct.meta import Endianess, FieldDescriptor
from bytestruct import fields
from bytestruct.exceptions import (
    BufferSizeException,
    MagicException,
    PackException,
    SchemaException,
    ValueRangeException,
)


def mixed_composite(b_endianess=Endianess.BIG_ENDIAN):
    return Composite('Mixed', [
        ('a', fields.StructField('B')),
        ('b', fields.StructField('H'), b_endianess),
        ('d', fields.ArrayField(fields.StructField('H'), 3)),
        ('e', fields.StructField('I')),
    ], endianess=Endianess.LITTLE_ENDIAN)


MIXED_VALUE = {
    'a': 0x12,
    'b': 0x3456,
    'd': [0x1020, 0x3040, 0x5060],
    'e': 0x9abcdef0,
}


class SampleBitfield(fields.BitField):

    def __init__(self, **kwargs):
        super().__init__('H', [('x', 4), ('y', 8), ('z', 4)], **kwargs)


class SubStruct(Chunk):
    class Meta:
        endianess = Endianess.BIG_ENDIAN

    b = fields.StructField('H')
    c = SampleBitfield()


class MainStruct(Chunk):
    class Meta:
        endianess = Endianess.LITTLE_ENDIAN

    a = fields.StructField('B')
    s = fields.ChunkField(SubStruct)
    d = fields.ArrayField(fields.StructField('H'), 3)
    e = fields.StructField('I')


def test_composite():
    composite = mixed_composite()

    assert composite.BYTE_LEN == 1 + 2 + 6 + 4
    assert composite.size == 13
    assert composite.layout == {
        'a': (0, 1),
        'b': (1, 2),
        'd': (3, 6),
        'e': (9, 4),
    }
    assert [_.endianess for _ in composite.fields] == [
        Endianess.LITTLE_ENDIAN,
        Endianess.BIG_ENDIAN,
        Endianess.LITTLE_ENDIAN,
        Endianess.LITTLE_ENDIAN,
    ]

    data = composite.encode(MIXED_VALUE)

    assert data == bytes.fromhex('12 3456 2010 4030 6050 f0debc9a')
    assert composite.decode(data) == MIXED_VALUE


def test_changing_byte_order_of_a_field():
    """Only the bytes of the field change, not the offsets of the others."""
    big = mixed_composite(Endianess.BIG_ENDIAN).encode(MIXED_VALUE)
    little = mixed_composite(Endianess.LITTLE_ENDIAN).encode(MIXED_VALUE)

    assert len(big) == len(little)
    assert big[1:3] == b'\x34\x56'
    assert little[1:3] == b'\x56\x34'
    assert big[:1] == little[:1]
    assert big[3:] == little[3:]


def test_composite_without_default():
    with pytest.raises(SchemaException) as excinfo:
        Composite('Broken', [
            ('a', fields.StructField('<B')),
            ('b', fields.StructField('H')),
        ])

    assert excinfo.value.path == 'Broken.b'


def test_composite_schema_errors():
    with pytest.raises(SchemaException):
        Composite('Twice', [
            ('a', fields.StructField('<B')),
            ('a', fields.StructField('<B')),
        ])

    with pytest.raises(SchemaException):
        Composite('NotAField', [('a', 'B')], endianess=Endianess.BIG_ENDIAN)

    with pytest.raises(SchemaException):
        Composite('NotADeclaration', [42])

    with pytest.raises(SchemaException):
        Composite('Conflict', [
            ('a', fields.StructField('<H'), Endianess.BIG_ENDIAN),
        ])


def test_composite_rejects_malformed_declarations():
    with pytest.raises(SchemaException):
        Composite('TooMany', [('a', fields.StructField('B'), Endianess.BIG_ENDIAN, 'extra')])

    with pytest.raises(SchemaException):
        Composite('TooFew', [('a',)])


def test_composite_array_byte_order_conflict():
    """The byte order given to an array must agree with the one of its elements."""
    with pytest.raises(SchemaException) as excinfo:
        Composite('P', [
            ('d', fields.ArrayField(fields.StructField('>H'), 2), Endianess.LITTLE_ENDIAN),
        ])

    assert excinfo.value.path == 'P.d'

    composite = Composite('P', [
        ('d', fields.ArrayField(fields.StructField('>H'), 2), Endianess.BIG_ENDIAN),
    ])

    assert composite.encode({'d': [1, 2]}) == b'\x00\x01\x00\x02'


def test_composite_accepts_descriptors():
    composite = Composite('Descriptors', [
        FieldDescriptor('a', fields.StructField('H'), Endianess.BIG_ENDIAN),
        FieldDescriptor('b', fields.StructField('H')),
    ], endianess=Endianess.LITTLE_ENDIAN)

    assert composite.encode({'a': 1, 'b': 1}) == b'\x00\x01\x01\x00'


def test_decode_wrong_size():
    composite = mixed_composite()

    with pytest.raises(BufferSizeException):
        composite.decode(b'\x00' * 12)

    with pytest.raises(BufferSizeException):
        composite.decode(b'\x00' * 14)


def test_decode_from_offset():
    composite = mixed_composite()
    data = b'\xaa\xbb' + composite.encode(MIXED_VALUE) + b'\xcc'

    assert composite.decode_from(data, 2) == MIXED_VALUE
    assert composite.decode_from(memoryview(data), 2) == MIXED_VALUE

    with pytest.raises(BufferSizeException):
        composite.decode_from(data, 4)

    with pytest.raises(BufferSizeException):
        composite.decode_from(data, -1)


def test_encode_into():
    composite = mixed_composite()
    buffer = bytearray(b'\xaa' * 15)

    composite.encode_into(MIXED_VALUE, buffer, 1)

    assert buffer[:1] == b'\xaa'
    assert buffer[1:14] == composite.encode(MIXED_VALUE)
    assert buffer[14:] == b'\xaa'


def test_encode_into_short_buffer():
    """A buffer too short is reported and left untouched."""
    composite = mixed_composite()
    buffer = bytearray(b'\xaa' * 13)

    with pytest.raises(BufferSizeException):
        composite.encode_into(MIXED_VALUE, buffer, 1)

    assert buffer == b'\xaa' * 13


def test_encode_into_invalid_value():
    """Nothing is written when a value can't be packed."""
    composite = Composite('Flags', [
        ('a', fields.StructField('B')),
        ('c', fields.BitField('H', [('x', 4), ('y', 8), ('z', 4)])),
    ], endianess=Endianess.BIG_ENDIAN)
    buffer = bytearray(b'\xaa' * 3)

    with pytest.raises(ValueRangeException) as excinfo:
        composite.encode_into({'a': 1, 'c': {'x': 0x10, 'y': 0, 'z': 0}}, buffer)

    assert excinfo.value.path == 'c.x'
    assert buffer == b'\xaa' * 3


def test_encode_missing_value():
    with pytest.raises(PackException) as excinfo:
        mixed_composite().encode({'a': 1})

    assert excinfo.value.path == 'b'


def test_encode_missing_value_in_nested_composite():
    """The path of a missing member goes through the composites containing it."""
    inner = Composite('Inner', [
        ('b', fields.StructField('H')),
    ], endianess=Endianess.BIG_ENDIAN)

    outer = Composite('Outer', [
        ('a', fields.StructField('H')),
        ('inner', inner),
    ], endianess=Endianess.LITTLE_ENDIAN)

    with pytest.raises(PackException) as excinfo:
        outer.encode({'a': 1, 'inner': {}})

    assert excinfo.value.path == 'inner.b'

    with pytest.raises(PackException) as excinfo:
        outer.encode({'a': 1})

    assert excinfo.value.path == 'inner'


def test_nested_composite():
    inner = Composite('Inner', [
        ('b', fields.StructField('H')),
    ], endianess=Endianess.BIG_ENDIAN)

    outer = Composite('Outer', [
        ('a', fields.StructField('H')),
        ('inner', inner),
    ], endianess=Endianess.LITTLE_ENDIAN)

    assert outer.BYTE_LEN == 4
    assert outer.encode({'a': 1, 'inner': {'b': 1}}) == b'\x01\x00\x00\x01'
    assert outer.decode(b'\x01\x00\x00\x01') == {'a': 1, 'inner': {'b': 1}}


def test_chunk():
    """Check that building a Chunk from fields behaves correctly."""
    class Dummy(Chunk):
        class Meta:
            endianess = Endianess.LITTLE_ENDIAN

        a = fields.StructField('I', default=0xbad)
        b = fields.StringField(0x10)
        c = fields.StructField('I', default=0xdeadbeef)

    dummy = Dummy()

    assert Dummy.BYTE_LEN == 0x18
    assert dummy.size == 0x18
    assert dummy.a == 0xbad
    assert dummy.b == b'\x00' * 0x10

    assert Dummy.layout() == {
        'a': (0x00, 0x04),
        'b': (0x04, 0x10),
        'c': (0x14, 0x04),
    }

    assert dummy.pack() == (
        b'\xad\x0b\x00\x00' +
        b'\x00' * 0x10 +
        b'\xef\xbe\xad\xde'
    )

    dummy.a = 0xcafe
    assert Dummy.unpack(dummy.pack()) == dummy


def test_nested_chunk():
    assert SubStruct.BYTE_LEN == 4
    assert MainStruct.BYTE_LEN == 15

    s = MainStruct(
        a=0x12,
        s=SubStruct(b=0x3456, c={'x': 0xf, 'y': 0x8f, 'z': 0x7}),
        d=[0x1020, 0x3040, 0x5060],
        e=0x9abcdef0,
    )

    data = bytearray(MainStruct.BYTE_LEN)
    s.pack_into(data)

    assert data == bytes([
        0x12, 0x34, 0x56, 0x78, 0xff, 0x20, 0x10, 0x40, 0x30, 0x60, 0x50, 0xf0, 0xde, 0xbc, 0x9a,
    ])

    data = bytes([
        0x00, 0x11, 0x22, 0x33, 0x44, 0x44, 0x55, 0x66, 0x77, 0x88, 0x99, 0xaa, 0xbb, 0xcc, 0xdd,
    ])

    assert MainStruct.unpack(data) == MainStruct(
        a=0x00,
        s=SubStruct(b=0x1122, c={'x': 0x4, 'y': 0x34, 'z': 0x3}),
        d=[0x5544, 0x7766, 0x9988],
        e=0xddccbbaa,
    )


def test_nested_chunk_ignores_byte_order(caplog):
    """Attaching a byte order to a nested chunk doesn't change a single byte."""
    with caplog.at_level(logging.WARNING, logger='bytestruct.resolver'):
        class Annotated(Chunk):
            class Meta:
                endianess = Endianess.LITTLE_ENDIAN

            s = fields.ChunkField(SubStruct, endianess=Endianess.LITTLE_ENDIAN)

    assert 'ignored' in caplog.text

    class Plain(Chunk):
        class Meta:
            endianess = Endianess.LITTLE_ENDIAN

        s = fields.ChunkField(SubStruct)

    sub = SubStruct(b=0x3456, c={'x': 0xf, 'y': 0x8f, 'z': 0x7})

    assert Annotated(s=sub).pack() == Plain(s=sub).pack() == b'\x34\x56\x78\xff'


def test_chunk_without_byte_order():
    """The error is raised when the class is declared, not when it's used."""
    with pytest.raises(SchemaException) as excinfo:
        class Broken(Chunk):
            a = fields.StructField('<H')
            b = fields.StructField('H')

    assert excinfo.value.path == 'Broken.b'


def test_chunk_only_explicit_byte_orders():
    class Explicit(Chunk):
        a = fields.StructField('<H')
        b = fields.StructField('>H')
        c = fields.ArrayField(fields.StructField('!H'), 2)
        d = fields.StringField(2)

    assert Explicit(a=1, b=1, c=[1, 2], d=b'OK').pack() == b'\x01\x00\x00\x01\x00\x01\x00\x02OK'


def test_chunk_inheritance():
    class Parent(Chunk):
        class Meta:
            endianess = Endianess.BIG_ENDIAN

        magic = fields.StructField('I', default=0xcafebabe, is_magic=True)

    class Child(Parent):
        length = fields.StructField('H')

    class LittleChild(Parent):
        class Meta:
            endianess = Endianess.LITTLE_ENDIAN

        length = fields.StructField('H')

    assert Child.BYTE_LEN == 6
    assert Child().get_ordered_fields_name() == ['magic', 'length']
    assert Child(length=5).pack() == b'\xca\xfe\xba\xbe\x00\x05'
    assert LittleChild(length=5).pack() == b'\xbe\xba\xfe\xca\x05\x00'

    with pytest.raises(MagicException) as excinfo:
        Child.unpack(b'\x00\x00\x00\x00\x00\x05')

    assert excinfo.value.path == 'magic'

    with pytest.raises(AttributeError):
        class Duplicated(Parent):
            magic = fields.StructField('I')


def test_chunk_diamond_inheritance():
    """A field inherited through two parents is laid out only once."""
    class Base(Chunk):
        class Meta:
            endianess = Endianess.BIG_ENDIAN

        a = fields.StructField('H')

    class Left(Base):
        b = fields.StructField('B')

    class Right(Base):
        c = fields.StructField('I')

    class Both(Left, Right):
        pass

    assert Both.BYTE_LEN == 7
    assert Both().get_ordered_fields_name() == ['a', 'b', 'c']
    assert Both(a=1, b=2, c=3).pack() == b'\x00\x01\x02\x00\x00\x00\x03'
    assert Both.layout() == {'a': (0, 2), 'b': (2, 1), 'c': (3, 4)}


def test_chunk_unknown_field():
    with pytest.raises(TypeError):
        SubStruct(kebab=1)


def test_chunk_with_enum():
    class Kind(Enum):
        FIRST = 1
        SECOND = 2

    class Tagged(Chunk):
        class Meta:
            endianess = Endianess.BIG_ENDIAN

        kind = fields.StructField('H', enum=Kind, default=Kind.FIRST)
        value = fields.StructField('f')

    tagged = Tagged(kind=Kind.SECOND, value=1.5)

    assert tagged.pack() == b'\x00\x02\x3f\xc0\x00\x00'
    assert Tagged.unpack(tagged.pack()) == tagged
    assert Tagged().kind is Kind.FIRST


def test_chunk_unpack_from():
    data = b'\xff' + SubStruct(b=1, c={'x': 1, 'y': 2, 'z': 3}).pack()

    assert SubStruct.unpack_from(data, 1) == SubStruct(b=1, c={'x': 1, 'y': 2, 'z': 3})


def test_array_of_chunks():
    class Table(Chunk):
        entries = fields.ArrayField(fields.ChunkField(SubStruct), 2)

    table = Table(entries=[
        SubStruct(b=1, c={'x': 0, 'y': 0, 'z': 0}),
        SubStruct(b=2, c={'x': 0, 'y': 0, 'z': 1}),
    ])

    assert Table.BYTE_LEN == 8
    assert table.pack() == b'\x00\x01\x00\x00\x00\x02\x10\x00'
    assert Table.unpack(table.pack()) == table


def test_error_path_in_nested_chunk():
    s = MainStruct(s=SubStruct(c={'x': 0, 'y': 0x100, 'z': 0}))

    with pytest.raises(ValueRangeException) as excinfo:
        s.pack()

    assert excinfo.value.path == 's.c.y'


def test_repr():
    assert repr(SubStruct(b=1)) == "<SubStruct(b=1,c={'x': 0, 'y': 0, 'z': 0})>"


def test_shared_between_threads():
    """A schema can be used concurrently without any coordination."""
    composite = mixed_composite()
    values = [dict(MIXED_VALUE, a=_) for _ in range(256)]

    with ThreadPoolExecutor(max_workers=8) as executor:
        encoded = list(executor.map(composite.encode, values))
        decoded = list(executor.map(composite.decode, encoded))

    assert encoded == [composite.encode(_) for _ in values]
    assert decoded == values
