"""Turn text, secret text or raw bytes into the byte sequence MD4 consumes."""
import codecs
import enum
import locale
import logging

from secret import SecretText

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class NormalizationError(Exception):
    pass


class UnsupportedEncodingError(NormalizationError):
    pass


class UnencodableTextError(NormalizationError):
    pass


class Encoding(enum.Enum):
    UTF16LE = 'utf-16-le'
    ASCII = 'ascii'
    UTF32 = 'utf-32-le'
    UTF8 = 'utf-8'
    UTF7 = 'utf-7'
    UTF16BE = 'utf-16-be'
    LATIN1 = 'latin-1'
    SYSTEM_DEFAULT = 'system'

    def codec(self):
        """Return the codec name, or raise if this platform lacks it."""
        if self is Encoding.SYSTEM_DEFAULT:
            name = locale.getpreferredencoding(False)
        else:
            name = self.value
        try:
            return codecs.lookup(name).name
        except LookupError as e:
            raise UnsupportedEncodingError(f'encoding {self.name} ({name}) is not available on this platform') from e

    def is_supported(self):
        try:
            self.codec()
        except UnsupportedEncodingError:
            return False
        return True

    @classmethod
    def from_name(cls, name):
        """Look up a member by name or codec spelling, e.g. 'utf16le' or 'UTF-16-LE'."""
        key = name.strip().lower().replace('-', '').replace('_', '')
        for member in cls:
            if key in (member.name.lower().replace('_', ''), member.value.replace('-', '')):
                return member
        raise UnsupportedEncodingError(f'unknown encoding {name!r}')


def normalize(source, encoding=Encoding.UTF16LE):
    """Return the bytes to hash for source.

    Bytes-like input is returned untouched and encoding is ignored. For a
    SecretText the result is a SecretBuffer which must be used as a context
    manager so it is wiped afterwards.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return source
    if not isinstance(source, (str, SecretText)):
        raise TypeError(f'cannot normalize {type(source).__name__}')
    codec = encoding.codec()
    logger.debug('encoding %s input with %s', type(source).__name__, codec)
    try:
        return source.encode(codec)
    except UnicodeEncodeError as e:
        raise UnencodableTextError(f'text cannot be represented in {encoding.name}: {e.reason}') from e
