"""Cisco IOS style wildcard masks for IPv4 and IPv6 addresses.

A wildcard mask marks the address bits that are ignored when matching:
a 0 bit must match the base address, a 1 bit may take any value.  Unlike
a subnet mask, the 1 bits need not be contiguous.  In address/wildcard
form:

    192.0.2.0/0.0.0.255     matches 192.0.2.0 to 192.0.2.255
    192.0.2.10/0.0.255.0    matches 192.0.0.10, 192.0.1.10, ... 192.0.255.10
    192.0.2.1/0.0.255.254   matches the odd final octets of 192.0.*.*

eipcalc.complement() converts between subnet and wildcard masks.
"""

import eipcalc

# =============================================================================
# Wildcard
# =============================================================================

class Wildcard:
    """A base address and wildcard mask, with a cursor for stepping.

    The cursor starts at the base address; next() and prev() move it
    through the matching addresses in address order, wrapping at either
    end.  first() and last() return new Wildcard objects, the cursor of
    the original is left alone.
    """

    __slots__ = ('_ip', '_bits', '_mask')

    def __init__(self, address, wildcard=None):
        """Instantiate a new Wildcard.

        Args:
            address: the base address, anything accepted by eipcalc.ip()
            wildcard: the wildcard mask as bytes or a mask string, e.g.
                '0.0.0.254'.  If None, every bit must match.
        """
        cursor = eipcalc.copy_ip(address)
        if wildcard is None:
            wildcard = bytes(len(cursor))
        mask = eipcalc.complement(eipcalc.as_mask(wildcard, len(cursor)))
        self._ip = cursor
        self._bits = eipcalc.mask_ip(cursor, mask)
        self._mask = mask

    @classmethod
    def from_string(cls, txt):
        """Take an "address/wildcard" string and return a Wildcard.

        The wildcard part may take any form accepted by
        eipcalc.parse_ip_mask(), so '2001:db8::/~64' is the same as
        '2001:db8::/::ffff:ffff:ffff:ffff'.
        """
        address, wildcard = eipcalc.parse_ip_mask(txt)
        return cls(address, wildcard)

    @classmethod
    def _from_parts(cls, cursor, bits, mask):
        wildcard = cls.__new__(cls)
        wildcard._ip = bytearray(cursor)
        wildcard._bits = bytes(bits)
        wildcard._mask = bytes(mask)
        return wildcard

    @property
    def ip(self):
        """The current address."""
        return bytes(self._ip)

    @property
    def wildcard(self):
        """The wildcard mask."""
        return eipcalc.complement(self._mask)

    @property
    def num_addresses(self):
        """The number of addresses matching this Wildcard."""
        return 2**sum(bin(x).count('1') for x in self.wildcard)

    def matches(self, address):
        """Check if an address matches this Wildcard.

        An address of the other IP version never matches.
        """
        address = eipcalc.ip(address)
        if len(address) != len(self._bits):
            return False
        return eipcalc.mask_ip(address, self._mask) == self._bits

    __contains__ = matches

    def first(self):
        """Return a Wildcard at the lowest matching address.

        e.g. 192.0.2.128/0.0.0.254 -> 192.0.2.0/0.0.0.254
        """
        return self._from_parts(self._bits, self._bits, self._mask)

    def last(self):
        """Return a Wildcard at the highest matching address.

        e.g. 192.0.2.128/0.0.0.254 -> 192.0.2.254/0.0.0.254
        """
        top = bytes(x | ~m & 0xff for x, m in zip(self._bits, self._mask))
        return self._from_parts(top, self._bits, self._mask)

    def next(self):
        """Move to the next matching address and return it.

        e.g. 192.0.2.128/0.0.0.254 -> 192.0.2.130
        """
        cursor, mask = self._ip, self._mask
        for i in range(len(cursor) - 1, -1, -1):
            for j in range(8):
                bit = 1 << j
                if mask[i] & bit:
                    continue
                if not cursor[i] & bit:
                    cursor[i] |= bit
                    return bytes(cursor)
                cursor[i] &= ~bit & 0xff
        return bytes(cursor)

    def prev(self):
        """Move to the previous matching address and return it.

        e.g. 192.0.2.128/0.0.0.254 -> 192.0.2.126
        """
        cursor, mask = self._ip, self._mask
        for i in range(len(cursor) - 1, -1, -1):
            for j in range(8):
                bit = 1 << j
                if mask[i] & bit:
                    continue
                if cursor[i] & bit:
                    cursor[i] &= ~bit & 0xff
                    return bytes(cursor)
                cursor[i] |= bit
        return bytes(cursor)

    def __iter__(self):
        """Iterate over the matching addresses, lowest first."""
        cursor = self.first()
        yield cursor.ip
        for _ in range(self.num_addresses - 1):
            yield cursor.next()

    def __eq__(self, other):
        if not isinstance(other, Wildcard):
            return NotImplemented
        return (self._ip == other._ip and self._bits == other._bits and
                self._mask == other._mask)

    def __str__(self):
        return '%s/%s' % (eipcalc.to_string(self._ip),
                          eipcalc.mask_to_string(self.wildcard))

    def __repr__(self):
        return "%s('%s')" % (self.__class__.__name__, self.__str__())

# =============================================================================
# Utility functions
# =============================================================================

def find_wildcard(a, b, *extra):
    """Return the most specific Wildcard matching several addresses.

    Example:
        find_wildcard('192.0.2.1', '192.0.2.255') -> 192.0.2.1/0.0.0.254

    Args:
        a, b, extra: the addresses to match, all of the same IP version

    Returns:
        A Wildcard at the bitwise AND of the addresses, with every bit
        that differs between any of them in the wildcard mask.
    """
    common = eipcalc.ip_and(a, b)
    wildcard = eipcalc.ip_xor(a, b)
    for address in extra:
        differ = eipcalc.ip_xor(common, address)
        common = eipcalc.ip_and(common, address)
        wildcard = bytes(x | y for x, y in zip(wildcard, differ))
    return Wildcard(common, wildcard)
