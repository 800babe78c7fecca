"""
# Bytestruct: fixed layout binary structures.

A structure is a sequence of fields with a size known in advance: numbers
of fixed width, fixed length strings, arrays with a fixed number of elements,
bitfields and other structures nested inside. From its declaration we can
derive

 1. BYTE_LEN: the exact number of bytes of the packed representation
 2. pack(): encode the values into exactly BYTE_LEN bytes
 3. unpack(): decode exactly BYTE_LEN bytes into the values

Numbers don't have a byte order of their own, so each one takes

 1. the byte order attached to the field, if any
 2. otherwise the default byte order of the structure containing it

while a nested structure always keeps its own layout, whatever the
structure containing it says. A field left without byte order is an error
reported as soon as the structure is declared.
"""
from .meta import Endianess, FieldDescriptor
from .core import Chunk, Composite
from .resolver import ResolvedField, resolve


__all__ = [
    'Chunk',
    'Composite',
    'Endianess',
    'FieldDescriptor',
    'ResolvedField',
    'resolve',
]
