"""CNF encoding of MD4 using PySAT for preimage/collision experiments.

This module builds a SAT instance that models the MD4 compression function
over one or more 512-bit blocks. It supports:
  - fixing some or all input bytes,
  - leaving chosen input bits free or forcing them to differ from the input,
  - optionally constraining the final digest,
  - running a configurable number of rounds,
then asks a SAT solver to find a satisfying assignment.
"""
import logging

from pysat.solvers import Solver

from md4 import MD4

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class MD4Collider:
    """Builder that encodes MD4 as CNF and solves it with a SAT solver.

    Parameters
    - input_bytes: bytes or None. If provided, must be a multiple of 64 bytes
                   (i.e. already padded). Those bytes are constrained into the
                   instance.
    - exclude_input_bits: iterable of bit indices constrained to be != the
                   corresponding bit of input_bytes.
    - free_input_bits: iterable of bit indices left unconstrained, so the
                   solver may pick either value.
    - target_digest: optional 128-bit integer in the MD4.md4_compress packing.
                   If provided, the final (a,b,c,d) state is constrained to
                   match it.
    Bit index k refers to byte k // 8, bit k % 8 counted from the MSB.
    """

    def __init__(self, input_bytes, exclude_input_bits=(), target_digest=None, free_input_bits=(), solver_name='g4'):
        assert input_bytes is None or len(input_bytes) % 64 == 0
        num_chunks = len(input_bytes) // 64 if input_bytes is not None else 1
        self.solver = Solver(name=solver_name)
        self.var_idx = 1
        self.a = []
        self.b = []
        self.c = []
        self.d = []
        self.x = []
        self.target_digest = target_digest
        self._init_vars(num_chunks)
        if input_bytes is not None:
            free_input_bits = set(free_input_bits)
            exclude_input_bits = set(exclude_input_bits)
            for i in range(len(input_bytes)):
                exclude_bits = [bit % 8 for bit in exclude_input_bits if bit // 8 == i]
                byte = self._get_byte_vars(self.x, i)
                for bit in range(8):
                    if i * 8 + bit in free_input_bits:
                        continue
                    self._add_constant([byte[bit]], (input_bytes[i] >> (7 - bit)) & 1,
                                       exclude_bits=[0] if bit in exclude_bits else [])
        # Constrain the initial state to the MD4 initial vector (IV).
        iv = MD4()
        self._add_constant(self.a, iv.a)
        self._add_constant(self.b, iv.b)
        self._add_constant(self.c, iv.c)
        self._add_constant(self.d, iv.d)

    def _init_number(self, num_bits):
        """Allocate and return a fresh vector of SAT variables of length num_bits."""
        num = list(range(self.var_idx, self.var_idx + num_bits))
        self.var_idx += num_bits
        return num

    def _init_bit(self):
        bit_var = self.var_idx
        self.var_idx += 1
        return bit_var

    def _init_vars(self, num_chunks):
        """Initialize message and state variables for the given chunk count."""
        self.x = self._init_number(512 * num_chunks)
        self.a = self._init_number(32)
        self.b = self._init_number(32)
        self.c = self._init_number(32)
        self.d = self._init_number(32)

    # Bytes and words are counted from the left most (MSB) bit of the array
    def _get_byte_vars(self, bit_array, byte_idx):
        return bit_array[byte_idx*8:(byte_idx+1)*8]

    def _get_word_vars(self, bit_array, word_idx):
        return bit_array[word_idx*32:(word_idx+1)*32]

    def _convert_endianness(self, bit_array):
        """Reverse byte order of a bit vector; keeps bit order within each byte."""
        new_bit_array = []
        for i in range(len(bit_array) // 8 - 1, -1, -1):
            new_bit_array.extend(self._get_byte_vars(bit_array, i))
        return new_bit_array

    def _add_constant(self, bit_array, constant, exclude_bits=()):
        """Constrain bit_array (MSB first) to constant.

        Positions listed in exclude_bits get the inverted literal, encoding
        "bit != constant" rather than equality.
        """
        assert 2 ** len(bit_array) > constant
        for i in range(len(bit_array)):
            multiplier = -1 if i in exclude_bits else 1
            c_bit = (constant >> (len(bit_array) - i - 1)) & 1
            if c_bit == 1:
                self.solver.add_clause([multiplier * bit_array[i]])
            else:
                self.solver.add_clause([multiplier * -bit_array[i]])
        return bit_array

    def _add_or(self, a, b, c=None):
        """Bitwise OR: c = a | b. Returns c (allocates if None)."""
        assert len(a) == len(b)
        if c is not None:
            assert len(a) == len(c)
        else:
            c = self._init_number(len(a))
        for i in range(len(a)):
            self.solver.add_clause([a[i], b[i], -c[i]])
            self.solver.add_clause([-a[i], c[i]])
            self.solver.add_clause([-b[i], c[i]])
        return c

    def _add_and(self, a, b, c=None):
        """Bitwise AND: c = a & b. Returns c (allocates if None)."""
        assert len(a) == len(b)
        if c is not None:
            assert len(a) == len(c)
        else:
            c = self._init_number(len(a))
        for i in range(len(a)):
            self.solver.add_clause([-a[i], -b[i], c[i]])
            self.solver.add_clause([a[i], -c[i]])
            self.solver.add_clause([b[i], -c[i]])
        return c

    def _add_xor(self, a, b, c=None):
        """Bitwise XOR: c = a ^ b. Returns c (allocates if None)."""
        assert len(a) == len(b)
        if c is not None:
            assert len(a) == len(c)
        else:
            c = self._init_number(len(a))
        for i in range(len(a)):
            self.solver.add_clause([-a[i], -b[i], -c[i]])
            self.solver.add_clause([a[i], b[i], -c[i]])
            self.solver.add_clause([a[i], -b[i], c[i]])
            self.solver.add_clause([-a[i], b[i], c[i]])
        return c

    def _add_not(self, a, b=None):
        """Bitwise NOT: b = ~a. Returns b (allocates if None)."""
        if b is not None:
            assert len(a) == len(b)
        else:
            b = self._init_number(len(a))
        for i in range(len(a)):
            self.solver.add_clause([-a[i], -b[i]])
            self.solver.add_clause([a[i], b[i]])
        return b

    def _add_majority(self, a, b, c, d=None):
        """Bitwise majority: d = (a & b) | (a & c) | (b & c)."""
        assert len(a) == len(b) == len(c)
        if d is not None:
            assert len(a) == len(d)
        else:
            d = self._init_number(len(a))
        for i in range(len(a)):
            # any two inputs set force the output, any two clear forbid it
            self.solver.add_clause([-a[i], -b[i], d[i]])
            self.solver.add_clause([-a[i], -c[i], d[i]])
            self.solver.add_clause([-b[i], -c[i], d[i]])
            self.solver.add_clause([a[i], b[i], -d[i]])
            self.solver.add_clause([a[i], c[i], -d[i]])
            self.solver.add_clause([b[i], c[i], -d[i]])
        return d

    def _add_sum(self, a, b, c=None):
        """Add two n-bit vectors a and b modulo 2^n (ripple-carry adder)."""
        assert len(a) == len(b)
        if c is not None:
            assert len(a) == len(c)
        else:
            c = self._init_number(len(a))
        carry = self._init_number(len(a))  # carry[k] is the carry into bit k
        for i in range(len(a)):
            # Walk from LSB to MSB using idx (LSB = len(a)-1).
            idx = len(a) - i - 1
            if i == 0:
                # Half-adder for LSB: sum = a ^ b, carry into next if both 1
                self._add_xor([a[idx]], [b[idx]], [c[idx]])
                if idx > 0:
                    self._add_and([a[idx]], [b[idx]], [carry[idx-1]])
            else:
                # Full-adder for remaining bits.
                ab_xor = self._init_bit()
                self._add_xor([a[idx]], [b[idx]], [ab_xor])
                self._add_xor([carry[idx]], [ab_xor], [c[idx]])
                if idx > 0:
                    cout1 = self._init_bit()
                    cout2 = self._init_bit()
                    self._add_and([a[idx]], [b[idx]], [cout1])
                    self._add_and([carry[idx]], [ab_xor], [cout2])
                    self._add_or([cout1], [cout2], [carry[idx-1]])
        return c

    def _add_rotate_left(self, a, n, b=None):
        """Rotate-left by n bits. Returns b (allocates if None)."""
        if b is not None:
            assert len(a) == len(b)
        else:
            b = self._init_number(len(a))
        for i in range(len(a)):
            b_idx = (len(a) + i - n) % len(a)
            self.solver.add_clause([a[i], -b[b_idx]])
            self.solver.add_clause([-a[i], b[b_idx]])
        return b

    def add_F(self, b, c, d, i):
        """CNF version of MD4's round-dependent boolean function."""
        if i < 16:
            return self._add_or(self._add_and(b, c), self._add_and(self._add_not(b), d))
        elif i < 32:
            return self._add_majority(b, c, d)
        elif i < 48:
            return self._add_xor(self._add_xor(b, c), d)
        else:
            raise ValueError("Invalid loop index")

    def add_combine_words(self, a, b, c, d, x, i):
        """Compute ROT(a + F(b,c,d) + x + K(i), S(i)) in CNF."""
        f = self.add_F(b, c, d, i)
        comb = self._add_sum(self._add_sum(a, f), x)
        if MD4.K(i):
            comb = self._add_sum(comb, self._add_constant(self._init_number(32), MD4.K(i)))
        return self._add_rotate_left(comb, MD4.S(i))

    def add_md4_iteration(self, a, b, c, d, x, i):
        """One MD4 step updating (a,b,c,d) with 32-bit word x at step i."""
        a_new = d
        c_new = b
        d_new = c
        b_new = self.add_combine_words(a, b, c, d, x, i)
        return a_new, b_new, c_new, d_new

    def solve_md4_chunk(self, chunk_idx, num_rounds=3):
        """Encode all steps for one 64-byte chunk and update state variables."""
        assert num_rounds in [1, 2, 3]

        a = self.a
        b = self.b
        c = self.c
        d = self.d

        for i in range(num_rounds * 16):
            idx = MD4.word_index(i)
            # MD4 treats message words as little-endian; convert from our MSB-first bit layout.
            input_word = self._convert_endianness(self._get_word_vars(self.x, chunk_idx*16 + idx))
            a, b, c, d = self.add_md4_iteration(a, b, c, d, input_word, i)

        # State update: add the original state (chaining value).
        self.a = self._add_sum(self.a, a)
        self.b = self._add_sum(self.b, b)
        self.c = self._add_sum(self.c, c)
        self.d = self._add_sum(self.d, d)

    def solve_md4(self, num_rounds=3):
        """Finalize the encoding for all chunks, add optional digest constraint, and solve.

        Returns (False, None) if UNSAT or interrupted; otherwise
        (True, (x_bytes, digest_int)).
        """
        for i in range(len(self.x) // 512):
            self.solve_md4_chunk(i, num_rounds)

        if self.target_digest is not None:
            self._add_constant(self._convert_endianness(self.a),
                               self.target_digest >> 96)
            self._add_constant(self._convert_endianness(self.b),
                               (self.target_digest >> 64) & 0xffffffff)
            self._add_constant(self._convert_endianness(self.c),
                               (self.target_digest >> 32) & 0xffffffff)
            self._add_constant(self._convert_endianness(self.d),
                               self.target_digest & 0xffffffff)

        logger.debug('solving %d variables, %d clauses', self.solver.nof_vars(), self.solver.nof_clauses())
        sat = self.solver.solve_limited(expect_interrupt=True)
        logger.debug('solver returned %s', sat)
        if not sat:
            return False, None
        return True, self.process_solution(self.solver.get_model())

    def solution_to_bytes(self, model, vars, convert_endianness=False):
        """Read a bit-vector assignment from model and pack into bytes.

        If convert_endianness is True, reverse byte order first.
        Bits inside each byte are read MSB-first.
        """
        if convert_endianness:
            vars = self._convert_endianness(vars)
        byte_vals = bytearray()
        byte = 0
        for j, bit_var in enumerate(vars):
            bit_val = model[bit_var-1] > 0
            byte |= bit_val << (8 - (j % 8) - 1)
            if j % 8 == 7:
                byte_vals.append(byte)
                byte = 0
        return bytes(byte_vals)

    def process_solution(self, model):
        """Extract (message_bytes, digest_int) from a satisfying assignment."""
        a = self.solution_to_bytes(model, self.a, True)
        b = self.solution_to_bytes(model, self.b, True)
        c = self.solution_to_bytes(model, self.c, True)
        d = self.solution_to_bytes(model, self.d, True)
        x = self.solution_to_bytes(model, self.x)
        return x, int.from_bytes(a + b + c + d, 'big')

    def delete(self):
        """Release the underlying solver."""
        self.solver.delete()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.delete()
