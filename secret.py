"""Scoped holders for secret plaintext.

Zeroing is best-effort: a SecretBuffer is always overwritten when its scope
ends, but Python offers no way to wipe an immutable str or any copies the
interpreter made of it.
"""


class SecretBuffer(bytearray):
    """A bytearray that overwrites itself with zeros when its scope ends.

        with secret.encode('utf-16-le') as buf:
            digest = compute_md4(buf)
    """

    def wipe(self):
        # same-size assignment, so it also works while a memoryview is held
        self[:] = bytes(len(self))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.wipe()

    def __repr__(self):
        return f'{type(self).__name__}(<{len(self)} bytes>)'


class SecretText:
    """A passphrase whose repr never reveals the value."""

    def __init__(self, value):
        if not isinstance(value, str):
            raise TypeError(f'expected str, got {type(value).__name__}')
        self._value = value

    def encode(self, codec):
        """Encode into a fresh SecretBuffer; use the result in a with block."""
        return SecretBuffer(self._value.encode(codec))

    def __len__(self):
        return len(self._value)

    def __repr__(self):
        return f'{type(self).__name__}(***)'

    __str__ = __repr__
