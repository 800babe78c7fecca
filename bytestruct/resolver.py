"""
Byte order resolution.

Every field of a composite ends up with exactly one effective byte order,
chosen with the following precedence

 1. a self-describing type (a nested composite, a raw string) keeps its own
    layout and ignores any byte order coming from outside
 2. the byte order explicitly attached to the field
 3. the default byte order of the container
 4. nothing: the layout is ambiguous and the schema is rejected

Arrays of primitives whose element carries an explicit byte order don't need
anything from outside, the elements resolve themselves.
"""
import logging
from typing import Optional

from .meta import Endianess, FieldDescriptor
from .exceptions import SchemaException


logger = logging.getLogger(__name__)


def merge_endianess(*annotations, name=None) -> Optional[Endianess]:
    '''Combine the byte orders attached to the same field in different places.

    Aliases are normalized before comparing, so NETWORK agrees with BIG_ENDIAN.'''
    result = None
    for annotation in annotations:
        if annotation is None:
            continue
        if not isinstance(annotation, Endianess):
            raise SchemaException(f'{annotation!r} is not a byte order', chain=[name] if name else [])

        annotation = annotation.normalize()
        if result is not None and annotation is not result:
            raise SchemaException(
                f'conflicting byte orders {result.name} and {annotation.name}',
                chain=[name] if name else [])
        result = annotation

    return result


def resolve_field(field, container_default: Endianess = None, explicit: Endianess = None, name=None) -> Optional[Endianess]:
    '''Return the byte order to use for the field, None when the field
    takes care of its own layout.'''
    explicit = merge_endianess(explicit, field.endianess, name=name)

    if field.self_describing:
        if explicit is not None:
            logger.warning('field \'%s\' has its own layout: byte order %s is ignored', name, explicit.name)
        return None

    if explicit is not None:
        field.check_endianess(explicit, name=name)
        return explicit

    if container_default is not None:
        return container_default.normalize()

    if not field.needs_endianess:
        return None

    raise SchemaException('field requires byte order but none specified', chain=[name] if name else [])


def resolve(descriptor: FieldDescriptor, container_default: Endianess = None) -> Optional[Endianess]:
    return resolve_field(
        descriptor.field,
        container_default=container_default,
        explicit=descriptor.endianess,
        name=descriptor.name,
    )


class ResolvedField(object):
    '''A field bound to its effective byte order and to its place in the composite.'''

    def __init__(self, descriptor: FieldDescriptor, endianess: Optional[Endianess], offset: int):
        self.descriptor = descriptor
        self.endianess = endianess
        self.offset = offset
        self.size = descriptor.field.size
        self.pack_into, self.unpack_from = descriptor.field.bind(endianess)

    @property
    def name(self):
        return self.descriptor.name

    @property
    def field(self):
        return self.descriptor.field

    def __repr__(self):
        order = self.endianess.name if self.endianess else 'SELF'
        return f'<{self.__class__.__name__}({self.name!r}, {order}, offset={self.offset}, size={self.size})>'
