class ByteStructException(Exception):
    '''Base class to extend in order to throw exception in bytestruct.

    Apart from the message it takes an argument that represents the chain of
    the fields that caused the exception, from the innermost to the outermost.
    '''

    def __init__(self, message='', chain=None):
        self.message = message
        self.chain = chain if chain is not None else []
        super().__init__(message)

    @property
    def path(self):
        return '.'.join(reversed(self.chain))

    def __str__(self):
        if not self.chain:
            return self.message

        return f'{self.path}: {self.message}'


class SchemaException(ByteStructException):
    '''The layout cannot be built: raised while the schema is constructed.'''
    pass


class BufferSizeException(ByteStructException):
    pass


class PackException(ByteStructException):
    pass


class ValueRangeException(PackException):
    '''A bitfield member doesn't fit into its declared width.'''
    pass


class UnpackException(ByteStructException):
    pass


class MagicException(UnpackException):
    pass
