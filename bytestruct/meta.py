import logging
import sys
from enum import Enum, auto


class Endianess(Enum):
    LITTLE_ENDIAN = auto()
    BIG_ENDIAN    = auto()
    NETWORK       = auto()
    NATIVE        = auto()

    def normalize(self) -> "Endianess":
        '''Reduce the aliases to one of the two concrete byte orders.'''
        if self is Endianess.NETWORK:
            return Endianess.BIG_ENDIAN
        if self is Endianess.NATIVE:
            return Endianess.LITTLE_ENDIAN if sys.byteorder == 'little' else Endianess.BIG_ENDIAN

        return self

    @property
    def byteorder(self) -> str:
        '''The name used by int.to_bytes() and friends.'''
        return 'little' if self.normalize() is Endianess.LITTLE_ENDIAN else 'big'

    @property
    def prefix(self) -> str:
        '''The struct module character for this byte order.'''
        return '<' if self.normalize() is Endianess.LITTLE_ENDIAN else '>'


class FieldDescriptor(object):
    """One member of a composite: its name, its type and an optional byte order.

    Inside a Chunk it's also the attribute through which the instance values
    are accessed.
    """

    def __init__(self, name: str, field: "Field", endianess: Endianess = None):
        self.name = name
        self.field = field
        self.endianess = endianess

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name!r}, {self.field!r})>'

    def __get__(self, instance, owner=None):
        if instance is None:
            return self

        try:
            return instance.__dict__[self.name]
        except KeyError:
            raise AttributeError(f"'{owner.__name__}' has no value for field '{self.name}'") from None

    def __set__(self, instance, value):
        instance.__dict__[self.name] = value


class FieldBase(object):

    def contribute_to_chunk(self, cls, name):
        if name in cls.__dict__:
            raise AttributeError(f'field {name} is already present in class {cls.__name__}')

        descriptor = FieldDescriptor(name, self)
        setattr(cls, name, descriptor)

        return descriptor


class Meta(object):
    """Class containing metadata about the chunk"""

    def __init__(self, endianess=None):
        self.fields = []
        self.endianess = endianess
        self.composite = None


class MetaChunk(type):

    logger = logging.getLogger(__name__)

    def __new__(cls, names, bases, attrs):
        '''Collect the fields in declaration order, parents first, and build
        the layout once for the whole lifetime of the class.'''
        module = attrs.pop('__module__')
        classcell = attrs.pop('__classcell__', None)
        options = attrs.pop('Meta', None)

        new_attrs = {
            '__module__': module,
        }
        if classcell is not None:
            new_attrs['__classcell__'] = classcell
        if '__qualname__' in attrs:
            new_attrs['__qualname__'] = attrs.pop('__qualname__')
        new_cls = super(MetaChunk, cls).__new__(cls, names, bases, new_attrs)

        new_cls._meta = Meta()

        # handle inheritance
        parents = [_ for _ in bases if isinstance(_, MetaChunk)]
        for parent in parents:
            if parent._meta.endianess is not None:
                new_cls._meta.endianess = parent._meta.endianess
            for descriptor in parent._meta.fields:
                if descriptor in new_cls._meta.fields:
                    continue
                setattr(new_cls, descriptor.name, descriptor)
                new_cls._meta.fields.append(descriptor)

        if options is not None and getattr(options, 'endianess', None) is not None:
            new_cls._meta.endianess = options.endianess

        for obj_name, obj in attrs.items():
            new_cls.add_to_class(obj_name, obj)

        new_cls._meta.composite = new_cls.build_composite()
        new_cls.BYTE_LEN = new_cls._meta.composite.size

        return new_cls

    def add_to_class(cls, name, value):
        if hasattr(value, 'contribute_to_chunk'):
            cls.logger.debug('contribute_to_chunk() found for field \'%s\'' % name)
            if any(_.name == name for _ in cls._meta.fields):
                raise AttributeError(f'field {name} is already present in class {cls.__name__}')
            cls._meta.fields.append(value.contribute_to_chunk(cls, name))
        else:
            setattr(cls, name, value)
