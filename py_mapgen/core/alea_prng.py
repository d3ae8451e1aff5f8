"""
Alea pseudo-random number generator.

Based on Johannes Baagøe's Alea algorithm. Every random draw made while
building a mesh or a world goes through one of these so that a seed fully
determines the result.
"""

_TWO_POW_32 = 0x100000000
_INV_TWO_POW_32 = 2.3283064365386963e-10
_MULTIPLIER = 2091639


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class Mash:
    """String hash feeding the Alea state; keeps its accumulator between calls."""

    def __init__(self):
        self.n = 0xEFC8249D

    def __call__(self, data) -> float:
        n = self.n
        for char in str(data):
            n += ord(char)
            h = 0.02519603282416938 * n
            n = _uint32(h)
            h = (h - n) * n
            n = _uint32(h)
            n += (h - n) * _TWO_POW_32
        self.n = n
        return _uint32(n) * _INV_TWO_POW_32


class AleaPRNG:
    """
    Seedable Alea generator producing floats in [0, 1).

    Seeds may be strings, numbers or an iterable of either; numbers hash the
    same as their string form.
    """

    def __init__(self, seed):
        self.call_count = 0

        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            parts = list(seed)
        else:
            parts = [seed]

        mash = Mash()
        state = [mash(" ") for _ in range(3)]
        for part in parts:
            for i in range(3):
                state[i] -= mash(part)
                if state[i] < 0:
                    state[i] += 1
        self._state = state
        self._carry = 1

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        s0, s1, s2 = self._state
        t = _MULTIPLIER * s0 + self._carry * _INV_TWO_POW_32
        self._carry = int(t)
        self._state = [s1, s2, t - self._carry]
        return self._state[2]

    def spread(self) -> float:
        """Difference of two draws: triangular distribution on (-1, 1)."""
        return self.random() - self.random()
