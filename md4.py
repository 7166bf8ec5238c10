"""MD4 message digest (RFC 1320).

This module provides a small, readable implementation of MD4: the padding
scheme, the little-endian block schedule and the three-round compression
function. The number of rounds executed by the compression function is
configurable (1-3 rounds = 16 steps each; full MD4 uses 3) so that reduced
round variants can be compared against the SAT encoding in collider.py.

The MD4 class is stateful: the state words a, b, c, d are updated as 512-bit
blocks are processed. compute_md4 and compute_md4_hex create a fresh instance
per call, so independent callers never share state.
"""
import logging

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

MASK32 = 0xffffffff
MASK64 = 0xffffffffffffffff

BLOCK_SIZE = 64
DIGEST_SIZE = 16


class BlockSchedule:
    """Iterable view over the 64-byte blocks of a padded message.

    Each item is a tuple of sixteen 32-bit words, word j being bytes
    4j..4j+3 read little-endian. Iterating again starts from the first block.
    """

    def __init__(self, padded):
        assert len(padded) % BLOCK_SIZE == 0
        self.padded = padded

    def __len__(self):
        return len(self.padded) // BLOCK_SIZE

    def __iter__(self):
        for offset in range(0, len(self.padded), BLOCK_SIZE):
            yield self.words(self.padded[offset:offset + BLOCK_SIZE])

    @staticmethod
    def words(block):
        """Decode one 64-byte block into 16 little-endian words."""
        assert len(block) == BLOCK_SIZE
        return tuple(int.from_bytes(block[j*4:j*4 + 4], 'little') for j in range(16))


class MD4:

    # Per-round left-rotation amounts (RFC 1320)
    S_table = [[3, 7, 11, 19],
               [3, 5, 9, 13],
               [3, 9, 11, 15]]

    # Per-round additive constants
    K_table = [0x00000000, 0x5a827999, 0x6ed9eba1]

    # Round 3 visits the words in bit-reversed order
    R3_order = [0, 8, 4, 12, 2, 10, 6, 14, 1, 9, 5, 13, 3, 11, 7, 15]

    def __init__(self):
        """Initialize to the MD4 initial vector (IV)."""
        self.a = 0x67452301
        self.b = 0xefcdab89
        self.c = 0x98badcfe
        self.d = 0x10325476

    @staticmethod
    def S(i):
        """Return the rotation amount for step index i (0 <= i < 48)."""
        return MD4.S_table[i // 16][i % 4]

    @staticmethod
    def K(i):
        """Return the additive constant for step index i."""
        return MD4.K_table[i // 16]

    @staticmethod
    def word_index(i):
        """Return the message word consumed at step index i.

        - Round 0: index = j
        - Round 1: index = 4*(j mod 4) + j div 4 (column-major)
        - Round 2: index = R3_order[j]
        """
        j = i % 16
        if i < 16:
            return j
        elif i < 32:
            return 4 * (j % 4) + j // 4
        elif i < 48:
            return MD4.R3_order[j]
        else:
            raise ValueError("Invalid loop index")

    @staticmethod
    def F(x, y, z, i):
        """MD4 non-linear boolean function selected by round index i.

        Round 0 (i < 16): F = (x & y) | (~x & z)
        Round 1 (i < 32): G = (x & y) | (x & z) | (y & z)
        Round 2 (i < 48): H = x ^ y ^ z
        """
        if i < 16:
            return ((x & y) | (~x & z)) & MASK32
        elif i < 32:
            return (x & y) | (x & z) | (y & z)
        elif i < 48:
            return x ^ y ^ z
        else:
            raise ValueError("Invalid loop index")

    @staticmethod
    def ROT(x, i):
        """Rotate x left by S(i) bits, modulo 2^32."""
        x = x & MASK32
        n = MD4.S(i)
        return ((x << n) | (x >> (32 - n))) & MASK32

    @staticmethod
    def combine_words(a, b, c, d, x, i):
        """Compute ROT(a + F(b,c,d) + x + K(i), S(i)) (mod 2^32)."""
        comb = (a + MD4.F(b, c, d, i) + x + MD4.K(i)) & MASK32
        return MD4.ROT(comb, i)

    @staticmethod
    def md4_iteration(a, b, c, d, x, i):
        """Perform one MD4 step (i) on state (a,b,c,d) with 32-bit word x.

        The freshly computed word takes the b position and the others shift
        along, so consecutive steps update A, D, C, B in turn.
        """
        a_new = d
        c_new = b
        d_new = c
        b_new = MD4.combine_words(a, b, c, d, x, i)
        return a_new, b_new, c_new, d_new

    @staticmethod
    def md4_length(num_bytes):
        """Return the 8-byte little-endian bit length field for num_bytes."""
        return ((num_bytes * 8) & MASK64).to_bytes(8, 'little')

    @staticmethod
    def md4_padded(input_bytes):
        """Return input_bytes padded to a multiple of 64 bytes per MD4.

        Padding: 0x80 byte, then 0x00 bytes up to 56 mod 64, then the
        64-bit little-endian length (in bits). A message that already ends at
        or past byte 56 of its last block spills into one more block.
        """
        padded = bytearray(input_bytes)
        num_bytes = len(padded)
        pad_len = (55 - num_bytes) % BLOCK_SIZE
        padded += b"\x80" + pad_len * b"\x00"
        padded += MD4.md4_length(num_bytes)
        return padded

    def md4_chunk(self, words, num_rounds=3):
        """Process one block (16 words) and update internal state."""
        assert num_rounds in [1, 2, 3]
        assert len(words) == 16
        a = self.a
        b = self.b
        c = self.c
        d = self.d

        for i in range(num_rounds * 16):
            a, b, c, d = MD4.md4_iteration(a, b, c, d, words[MD4.word_index(i)], i)

        # md4_iteration leaves the registers rotated by one position per
        # step; 16 steps per round is a whole number of turns.
        self.a = (self.a + a) & MASK32
        self.b = (self.b + b) & MASK32
        self.c = (self.c + c) & MASK32
        self.d = (self.d + d) & MASK32

    def md4_compress(self, padded, num_rounds=3):
        """Run every block of an already padded message through md4_chunk.

        Returns the state packed the same way as md4_digest.
        """
        schedule = BlockSchedule(padded)
        logger.debug('compressing %d block(s) with %d round(s)', len(schedule), num_rounds)
        for words in schedule:
            self.md4_chunk(words, num_rounds)
        return int.from_bytes(self.digest(), 'big')

    def md4_digest(self, input_bytes, num_rounds=3):
        """Compute the MD4 digest of input_bytes as a 128-bit integer.

        The input is always padded. The return value packs a,b,c,d
        (little-endian words) into a big-endian integer.
        """
        padded = MD4.md4_padded(input_bytes)
        try:
            return self.md4_compress(padded, num_rounds)
        finally:
            padded[:] = bytes(len(padded))

    def digest(self):
        """Serialize the current state into the 16-byte digest."""
        return self.a.to_bytes(4, 'little') + \
            self.b.to_bytes(4, 'little') + \
            self.c.to_bytes(4, 'little') + \
            self.d.to_bytes(4, 'little')

    def hexdigest(self, uppercase=False):
        value = self.digest().hex()
        return value.upper() if uppercase else value


def compute_md4(input_bytes):
    """Return the 16-byte MD4 digest of a bytes-like object."""
    md4 = MD4()
    with memoryview(input_bytes) as view:
        md4.md4_digest(view)
    return md4.digest()


def compute_md4_hex(input_bytes, uppercase=False):
    """Return the MD4 digest of a bytes-like object as 32 hex characters."""
    value = compute_md4(input_bytes).hex()
    return value.upper() if uppercase else value
