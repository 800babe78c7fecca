"""
Fixed width numeric types: the only place where a python value becomes bytes.

Every kind has a fixed byte length and no byte order of its own, the byte
order is always supplied by whoever uses it.
"""
import struct
from typing import Dict

from .meta import Endianess
from .exceptions import PackException, SchemaException, BufferSizeException


class Primitive(object):

    def __init__(self, name: str, format: str, size: int, signed: bool = False, floating: bool = False):
        self.name = name
        self.format = format
        self.size = size
        self.signed = signed
        self.floating = floating

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name})>'

    @property
    def byte_length(self) -> int:
        return self.size

    @property
    def bit_length(self) -> int:
        return self.size * 8

    @property
    def is_unsigned_integer(self) -> bool:
        return not self.signed and not self.floating

    def _check_value(self, value):
        if self.floating:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise PackException(f'{self.name} expects a number, got {type(value).__name__}')
        elif isinstance(value, bool) or not isinstance(value, int):
            raise PackException(f'{self.name} expects an integer, got {type(value).__name__}')

    def encode(self, value, endianess: Endianess) -> bytes:
        self._check_value(value)

        if self.format is None:
            try:
                return value.to_bytes(self.size, endianess.byteorder, signed=self.signed)
            except OverflowError as e:
                raise PackException(f'{value} is out of range for {self.name}') from e

        try:
            return struct.pack(endianess.prefix + self.format, value)
        except (struct.error, OverflowError) as e:
            raise PackException(f'{value} is out of range for {self.name}') from e

    def decode(self, data: bytes, endianess: Endianess):
        if len(data) != self.size:
            raise BufferSizeException(f'{self.name} needs {self.size} bytes, got {len(data)}')

        if self.format is None:
            return int.from_bytes(data, endianess.byteorder, signed=self.signed)

        return struct.unpack(endianess.prefix + self.format, data)[0]

    def encode_le(self, value) -> bytes:
        return self.encode(value, Endianess.LITTLE_ENDIAN)

    def encode_be(self, value) -> bytes:
        return self.encode(value, Endianess.BIG_ENDIAN)

    def decode_le(self, data: bytes):
        return self.decode(data, Endianess.LITTLE_ENDIAN)

    def decode_be(self, data: bytes):
        return self.decode(data, Endianess.BIG_ENDIAN)

    def pack_into(self, value, buffer, offset: int, endianess: Endianess) -> None:
        buffer[offset:offset + self.size] = self.encode(value, endianess)

    def unpack_from(self, buffer, offset: int, endianess: Endianess):
        return self.decode(bytes(buffer[offset:offset + self.size]), endianess)


u8   = Primitive('u8', 'B', 1)
i8   = Primitive('i8', 'b', 1, signed=True)
u16  = Primitive('u16', 'H', 2)
i16  = Primitive('i16', 'h', 2, signed=True)
u32  = Primitive('u32', 'I', 4)
i32  = Primitive('i32', 'i', 4, signed=True)
u64  = Primitive('u64', 'Q', 8)
i64  = Primitive('i64', 'q', 8, signed=True)
# no struct format for these
u128 = Primitive('u128', None, 16)
i128 = Primitive('i128', None, 16, signed=True)
f32  = Primitive('f32', 'f', 4, signed=True, floating=True)
f64  = Primitive('f64', 'd', 8, signed=True, floating=True)

ALL = (u8, i8, u16, i16, u32, i32, u64, i64, u128, i128, f32, f64)

KINDS: Dict[str, Primitive] = {}
for _primitive in ALL:
    KINDS[_primitive.name] = _primitive
    if _primitive.format is not None:
        KINDS[_primitive.format] = _primitive


def get_primitive(kind) -> Primitive:
    '''Look up a kind by its name ('u16') or by its struct format character ('H').'''
    if isinstance(kind, Primitive):
        return kind

    try:
        return KINDS[kind]
    except (KeyError, TypeError):
        raise SchemaException(f'unknown primitive kind {kind!r}') from None
