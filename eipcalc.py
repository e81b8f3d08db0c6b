"""Exact, wraparound-safe arithmetic over packed IPv4/IPv6 addresses.

Addresses and masks are handled as packed big-endian bytes, 4 bytes for
IPv4 and 16 bytes for IPv6.  Every function returns a new bytes object,
so results never alias the caller's buffers.

Note that the next/prev functions wrap silently, e.g.:
    next_ip('255.255.255.255') -> b'\\x00\\x00\\x00\\x00'
"""

import logging

# =============================================================================
# Module specific constants
# =============================================================================

__version__ = '0.1.0'

# IP version numbers
IPV4 = 4
IPV6 = 6

# IP address length, in bits
IPV4LENGTH = 32
IPV6LENGTH = 128

# IP address length, in bytes
IPV4LEN = IPV4LENGTH // 8
IPV6LEN = IPV6LENGTH // 8

# Max IP address integer
MAX_IPV4 = 2**IPV4LENGTH - 1
MAX_IPV6 = 2**IPV6LENGTH - 1

# the first 12 bytes of an IPv4-mapped IPv6 address, ::ffff:a.b.c.d
_V4_MAPPED_PREFIX = bytes(10) + b'\xff\xff'

_HEX_DIGITS = frozenset('0123456789ABCDEFabcdef')
_DEC_DIGITS = frozenset('0123456789')

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# =============================================================================
# Module specific exceptions
# =============================================================================

class ParseError(ValueError):
    """A Value Error raised for address or mask text that cannot be parsed.

    Attributes:
        kind: what was being parsed, 'IP address' or 'Mask'
        text: the offending text
    """

    kind = 'value'

    def __init__(self, text, msg=None):
        self.text = text
        if msg is None:
            msg = 'invalid %s: %r' % (self.kind, text)
        super().__init__(msg)

class AddressValueError(ParseError):
    """A Value Error related to the address."""

    kind = 'IP address'

class NetmaskValueError(ParseError):
    """A Value Error related to the netmask."""

    kind = 'Mask'

# =============================================================================
# Address text
# =============================================================================

def ishexdigit(txt):
    """Returns True if all characters are hex digits"""
    for digit in txt:
        if digit not in _HEX_DIGITS:
            return False
    # an empty string is not hex
    return txt != ''

def isdecimal(txt):
    """Returns True if all characters are ASCII decimal digits"""
    return txt != '' and _DEC_DIGITS.issuperset(txt)

def _v4_from_string(txt):
    """Convert an IPv4 address string to an integer.

    The string format is "a.b.c.d", where a, b, c and d are decimal
    integers in the range 0 to 255, inclusive.  Spaces, or leading
    zeros, are not permitted.

    Raises:
        AddressValueError if the string is not a valid IPv4 address.
    """
    words = txt.split('.')
    if len(words) != 4:
        raise AddressValueError(txt, 'IPv4 string is not n.n.n.n: %r' % (txt,))
    ip = 0
    for word in words:
        if not isdecimal(word):
            raise AddressValueError(txt, 'non-decimal word: %r' % (txt,))
        if word[0] == '0' and len(word) != 1:
            raise AddressValueError(txt, 'leading zero not allowed: %r' % (txt,))
        val = int(word, 10)
        if val > 255:
            raise AddressValueError(txt, 'value too big: %r' % (txt,))
        ip = (ip << 8) + val
    return ip

def _v6_from_string(txt):
    """Convert an IPv6 address string to an integer.

    The string format is "n1:n2:n3:n4:n5:n6:n7:n8", where n1 to n8
    are hexadecimal integers in the range 0 to FFFF, inclusive.  A
    single sequence of consecutive words with a value of 0 may be
    represented as '::'.  The last two words may alternatively be
    expressed as an IPv4 address "a.b.c.d".

    Raises:
        AddressValueError if the string is not a valid IPv6 address.
    """
    parts = txt.split('::')
    numparts = len(parts)
    if numparts > 2:
        raise AddressValueError(txt, 'multiple "::" ranges: %r' % (txt,))
    # store lists of values before (head) and after (tail) the '::'
    head, tail = [], []
    values = head
    ipv4_part = None
    for i in range(numparts):
        if parts[i]:
            for word in parts[i].split(':'):
                if ipv4_part is not None:
                    # nothing allowed after the IPv4 part of the address
                    raise AddressValueError(txt)
                if not ishexdigit(word):
                    if i + 1 == numparts:
                        # an IPv4 address may be at the end of the last part
                        try:
                            ipv4_part = _v4_from_string(word)
                        except AddressValueError:
                            raise AddressValueError(txt) from None
                        values.extend([ipv4_part >> 16, ipv4_part & 0xffff])
                        continue
                    raise AddressValueError(txt)
                if len(word) > 4:
                    raise AddressValueError(txt)
                values.append(int(word, 16))
        values = tail
    # build a single list of values, filling the gap with 0's
    if numparts == 2:
        numwords = len(head) + len(tail)
        if numwords >= 8:
            raise AddressValueError(txt, 'too many words: %r' % (txt,))
        head.extend([0] * (8 - numwords))
        head.extend(tail)
    elif len(head) != 8:
        raise AddressValueError(txt, 'too many/few words: %r' % (txt,))
    ip = 0
    for val in head:
        ip = (ip << 16) + val
    return ip

def address_from_string(txt):
    """Pack an IPv4 or IPv6 address string, without canonicalizing it.

    Args:
        txt: An address string, "a.b.c.d" or colon separated hex words

    Returns:
        The packed address, 4 bytes for IPv4 or 16 bytes for IPv6.

    Raises:
        AddressValueError if the string is not a valid IP address.
    """
    if not isinstance(txt, str):
        raise AddressValueError(txt, 'address is not a string: %r' % (txt,))
    if ':' in txt:
        return _v6_from_string(txt).to_bytes(IPV6LEN, 'big')
    return _v4_from_string(txt).to_bytes(IPV4LEN, 'big')

def to_string(address):
    """Convert a packed address to its (compressed) string form.

    Example:
        >>> to_string(b'\\x20\\x01\\x0d\\xb8' + bytes(12))
        '2001:db8::'

    Args:
        address: the address, anything accepted by ip()

    Returns:
        The address string
    """
    return _to_string(ip(address))

def mask_to_string(mask):
    """Convert a packed mask to its (compressed) string form.

    Unlike to_string(), the mask keeps its length, so a 16 byte mask
    such as ::ffff:0:0 is never written as an IPv4 mask.

    Raises:
        NetmaskValueError: if the mask is not 4 or 16 bytes.
    """
    mask = as_mask(mask)
    if len(mask) not in (IPV4LEN, IPV6LEN):
        raise NetmaskValueError(mask, 'mask is not 4 or 16 bytes: %r' % (mask,))
    return _to_string(mask)

def _to_string(packed):
    """Format 4 or 16 packed bytes as an address string, as given."""
    value = int.from_bytes(packed, 'big')
    if len(packed) == IPV4LEN:
        return '%s.%s.%s.%s' % (value >> 24 & 0xff, value >> 16 & 0xff,
                                value >>  8 & 0xff, value >>  0 & 0xff)
    words = [value >> shift & 0xffff for shift in range(112, -1, -16)]
    # find the longest sequence of zeros (start, length)
    zeros = 0, 0
    start, length = 0, 0
    for index, word in enumerate(words):
        if word == 0:
            if length == 0:
                start = index
            length += 1
        elif length > 0:
            if length > zeros[1]:
                zeros = start, length
            length = 0
    # compress the (first) longest zero sequence
    if length <= zeros[1]:
        start, length = zeros
    if length > 1:
        head = ':'.join(('%x' % x for x in words[:start]))
        tail = ':'.join(('%x' % x for x in words[start + length:]))
        return '::'.join([head, tail])
    return ':'.join(('%x' % x for x in words))

# =============================================================================
# Canonical addresses
# =============================================================================

def ip(address):
    """Return an address as packed bytes of the correct length.

    IPv4-mapped IPv6 addresses (::ffff:a.b.c.d) are collapsed to 4 bytes.

    Args:
        address: A string, bytes-like object of 4 or 16 bytes, integer,
            or an object with a 'packed' attribute, such as an
            ipaddress.IPv4Address.  Integers less than 2**32 are taken
            to be IPv4 addresses.

    Returns:
        The address as 4 (IPv4) or 16 (IPv6) bytes.

    Raises:
        AddressValueError: if address is not a v4 or a v6 address
    """
    if isinstance(address, str):
        packed = address_from_string(address)
    elif isinstance(address, (bytes, bytearray, memoryview)):
        packed = bytes(address)
    elif isinstance(address, int):
        if not 0 <= address <= MAX_IPV6:
            raise AddressValueError(address,
                                    'address out of range: %r' % (address,))
        size = IPV4LEN if address <= MAX_IPV4 else IPV6LEN
        packed = address.to_bytes(size, 'big')
    elif hasattr(address, 'packed'):
        packed = bytes(address.packed)
    else:
        raise AddressValueError(address)
    if len(packed) == IPV6LEN and packed[:12] == _V4_MAPPED_PREFIX:
        return packed[12:]
    if len(packed) not in (IPV4LEN, IPV6LEN):
        raise AddressValueError(address,
                                'address is not 4 or 16 bytes: %r' % (address,))
    return packed

def copy_ip(address):
    """Return a mutable copy of an address, as a canonical bytearray."""
    return bytearray(ip(address))

def ip_version(address):
    """The IP version of an address, IPV4 or IPV6."""
    if len(ip(address)) == IPV4LEN:
        return IPV4
    return IPV6

def ip_size(address):
    """The size of an address, in bytes."""
    if ip_version(address) == IPV4:
        return IPV4LEN
    return IPV6LEN

# =============================================================================
# Masks
# =============================================================================

def _count_righthand_zero_bits(number, bits):
    """Count the number of zero bits on the right hand side.

    Args:
        number: An integer.
        bits: Maximum number of bits to count.

    Returns:
        The number of zero bits on the right hand side of the number.
    """
    if number == 0:
        return bits
    return min(bits, (~number & (number - 1)).bit_length())

def _fit_mask(mask, size):
    """Return a packed mask resized to size bytes, or None if it cannot be.

    Only an IPv4-mapped 16 byte mask may be resized, to 4 bytes.
    """
    if len(mask) == size:
        return bytes(mask)
    if size == IPV4LEN and len(mask) == IPV6LEN and \
            mask[:12] == _V4_MAPPED_PREFIX:
        return bytes(mask[12:])
    return None

def as_mask(mask, size=None):
    """Take a mask argument and return it as packed bytes.

    Strings are packed as written and bytes-like masks are used as-is,
    neither is canonicalized like an address.  If size is given, an
    IPv4-mapped form shrinks to fit.  None is returned unchanged.

    Raises:
        NetmaskValueError: if a mask string is not valid.
    """
    if mask is None:
        return None
    if isinstance(mask, str):
        try:
            mask = address_from_string(mask)
        except AddressValueError as err:
            raise NetmaskValueError(err.text) from None
    if size is not None:
        return _fit_mask(mask, size) or bytes(mask)
    return bytes(mask)

def cidr_mask(ones, bits):
    """Return a contiguous mask with the leading ones bits set.

    Example:
        >>> cidr_mask(12, 32)
        b'\\xff\\xf0\\x00\\x00'

    Args:
        ones: the prefix length, 0 <= ones <= bits
        bits: the address length in bits, IPV4LENGTH or IPV6LENGTH

    Raises:
        NetmaskValueError: if ones is out of range.
    """
    if not 0 <= ones <= bits:
        raise NetmaskValueError(str(ones),
                                'prefix length out of range: %r' % (ones,))
    size = 2**(bits - ones)
    return (2**bits - size).to_bytes(bits // 8, 'big')

def parse_mask(txt):
    """Parse a mask written as an address, e.g. '255.255.240.0'.

    Returns:
        The mask as canonical packed bytes.

    Raises:
        NetmaskValueError if the string is not a valid mask.
    """
    try:
        return ip(address_from_string(txt))
    except AddressValueError:
        raise NetmaskValueError(txt) from None

def _mask_from_string(txt, size):
    """Convert a mask string, for an address of size bytes, to a mask.

    Acceptable strings are a decimal prefix length, in the range 0 to
    the address length in bits; or a mask expressed as an address of
    the same family.  A leading '~' inverts the mask that follows.

    Raises:
        NetmaskValueError if the string is not a valid mask.
    """
    wildcard = txt.startswith('~')
    body = txt[1:] if wildcard else txt
    if isdecimal(body):
        ones = int(body, 10)
        if ones > size * 8:
            raise NetmaskValueError(txt, 'prefix length too big: %r' % (txt,))
        mask = cidr_mask(ones, size * 8)
    else:
        try:
            raw = address_from_string(body)
        except AddressValueError:
            raise NetmaskValueError(txt) from None
        mask = _fit_mask(raw, size)
        if mask is None:
            raise NetmaskValueError(
                    txt, 'mask and address families differ: %r' % (txt,))
    if wildcard:
        mask = complement(mask)
    return mask

def parse_ip_mask(txt):
    """Parse an "address[/mask]" string.

    The mask need not be in CIDR format: it may be a prefix length,
    e.g. '192.0.2.10/24', or any mask written as an address, e.g.
    '192.0.2.10/255.0.255.0'.  If it starts with '~' the mask is
    inverted, e.g. '192.0.2.10/~12' has the mask 0.15.255.255.

    Args:
        txt: the address and optional mask string

    Returns:
        A tuple (address, mask) of packed bytes, the mask is None if
        the string has no mask part.

    Raises:
        AddressValueError if the address is not valid.
        NetmaskValueError if the mask is not valid, or there is more
            than one '/'.
    """
    if not isinstance(txt, str):
        raise AddressValueError(txt, 'address is not a string: %r' % (txt,))
    words = txt.split('/')
    try:
        address = ip(words[0])
        if len(words) > 2:
            raise NetmaskValueError(
                    txt.split('/', 1)[1],
                    'more than one "/" separator: %r' % (txt,))
        mask = None
        if len(words) == 2:
            mask = _mask_from_string(words[1], len(address))
    except ParseError as err:
        logger.debug('cannot parse %r: %s', txt, err)
        raise
    return address, mask

def complement(mask):
    """Return the bitwise complement of a mask.

    Commonly used to convert between subnet and wildcard masks, e.g.
    complement(255.255.254.0) -> 0.0.1.255.  The complement of an
    unset mask (None) is None.
    """
    if mask is None:
        return None
    return bytes(~x & 0xff for x in as_mask(mask))

# =============================================================================
# Arithmetic
# =============================================================================

def _carry(buf, i):
    """Add 1 into buf, starting at the byte to the left of index i."""
    for j in range(i - 1, -1, -1):
        buf[j] = (buf[j] + 1) & 0xff
        if buf[j] != 0x00:
            break

def _borrow(buf, i):
    """Subtract 1 from buf, starting at the byte to the left of index i."""
    for j in range(i - 1, -1, -1):
        buf[j] = (buf[j] - 1) & 0xff
        if buf[j] != 0xff:
            break

def next_ip(address):
    """Return the next IP address, e.g. 192.0.2.0 -> 192.0.2.1."""
    buf = copy_ip(address)
    _carry(buf, len(buf))
    return bytes(buf)

def prev_ip(address):
    """Return the previous IP address, e.g. 192.0.2.1 -> 192.0.2.0."""
    buf = copy_ip(address)
    _borrow(buf, len(buf))
    return bytes(buf)

def add(a, b, mask=None):
    """Return the sum of two addresses, with b masked by mask.

    Example:
        add(192.0.2.255, 0.0.1.2, 0.0.1.255) -> 192.0.4.1

    Args:
        a: the address to add to
        b: the address to add
        mask: only the bits of b set in mask are added, None for all

    Returns:
        a + (b & mask), wrapped at the top of the address space.
    """
    buf = copy_ip(a)
    b = ip(b)
    mask = as_mask(mask, len(buf)) or b'\xff' * len(buf)
    for i in range(len(mask) - 1, -1, -1):
        prev = buf[i]
        buf[i] = (prev + (b[i] & mask[i])) & 0xff
        if buf[i] < prev:
            _carry(buf, i)
    return bytes(buf)

def subtract(a, b, mask=None):
    """Return the difference of two addresses, with b masked by mask.

    Example:
        subtract(192.0.2.3, 192.0.2.1, 0.0.0.255) -> 192.0.2.2

    Args:
        a: the address to subtract from
        b: the address to subtract
        mask: only the bits of b set in mask are subtracted, None for all

    Returns:
        a - (b & mask), wrapped at the bottom of the address space.
    """
    buf = copy_ip(a)
    b = ip(b)
    mask = as_mask(mask, len(buf)) or b'\xff' * len(buf)
    for i in range(len(mask) - 1, -1, -1):
        prev = buf[i]
        buf[i] = (prev - (b[i] & mask[i])) & 0xff
        if buf[i] > prev:
            _borrow(buf, i)
    return bytes(buf)

# =============================================================================
# Bitwise operations
# =============================================================================
# a and b must be of the same IP version, the result is truncated to the
# shorter of the two.

def ip_and(a, b):
    """Bitwise AND, e.g. 192.0.2.1 & 192.0.2.100 -> 192.0.2.0."""
    return bytes(x & y for x, y in zip(ip(a), ip(b)))

def ip_or(a, b):
    """Bitwise OR, e.g. 192.0.2.1 | 192.0.2.100 -> 192.0.2.101."""
    return bytes(x | y for x, y in zip(ip(a), ip(b)))

def ip_xor(a, b):
    """Bitwise XOR, e.g. 192.0.2.1 ^ 172.31.128.17 -> 108.31.130.16."""
    return bytes(x ^ y for x, y in zip(ip(a), ip(b)))

def mask_ip(address, mask):
    """Return address & mask.

    Unlike ip_and(), the mask is used as given, it is never collapsed
    as if it were an IPv4-mapped address.  An unset mask (None) returns
    the address unchanged.
    """
    address = ip(address)
    mask = as_mask(mask, len(address))
    if mask is None:
        return address
    return bytes(x & y for x, y in zip(address, mask))

def merge(a, b, mask=None):
    """Combine two addresses with a mask.

    For each bit, if it is set in mask then the bit from b is used,
    otherwise the bit from a, e.g.:
        merge(192.0.2.1, 172.16.32.100, 0.0.0.255) -> 192.0.2.100

    An unset mask (None) selects every bit of b.
    """
    a = ip(a)
    b = ip(b)
    mask = as_mask(mask, len(a)) or b'\xff' * len(a)
    return bytes(x & ~m | y & m for x, y, m in zip(a, b, mask))

# =============================================================================
# Networks
# =============================================================================

class IPNetwork:
    """An address and mask pair.

    The mask need not be contiguous; broadcast(), next_subnet(),
    prev_subnet() and contains() are only meaningful when it is.
    """

    __slots__ = ('_ip', '_mask')

    def __init__(self, address, mask=None):
        """Instantiate a new network.

        Args:
            address: the network address, anything accepted by ip()
            mask: the network mask as bytes, a mask string or prefix
                length string, or an integer prefix length.  If None,
                the mask has every bit set.

        Raises:
            AddressValueError: If address is not valid.
            NetmaskValueError: If mask is not valid.
        """
        self._ip = ip(address)
        size = len(self._ip)
        if mask is None:
            self._mask = b'\xff' * size
        elif isinstance(mask, int):
            self._mask = cidr_mask(mask, size * 8)
        elif isinstance(mask, str):
            self._mask = _mask_from_string(mask, size)
        else:
            self._mask = as_mask(mask, size)

    @property
    def ip(self):
        """The network address, as given."""
        return self._ip

    @property
    def mask(self):
        """The network mask."""
        return self._mask

    @property
    def version(self):
        """The IP version of this network."""
        return ip_version(self._ip)

    @property
    def prefixlen(self):
        """The prefix length, or None if the mask is not contiguous."""
        bits = len(self._mask) * 8
        value = int.from_bytes(self._mask, 'big')
        hostlen = _count_righthand_zero_bits(value, bits)
        if value != 2**bits - 2**hostlen:
            return None
        return bits - hostlen

    @property
    def broadcast_address(self):
        """The highest address in the network."""
        return broadcast(self)

    def __contains__(self, address):
        """Check if an address is in this network."""
        address = ip(address)
        if len(address) != len(self._ip):
            return False
        return mask_ip(address, self._mask) == mask_ip(self._ip, self._mask)

    def __eq__(self, other):
        if not isinstance(other, IPNetwork):
            return NotImplemented
        return self._ip == other._ip and self._mask == other._mask

    def __hash__(self):
        return hash((self._ip, self._mask))

    def __str__(self):
        prefixlen = self.prefixlen
        if prefixlen is None:
            return '%s/%s' % (to_string(self._ip), mask_to_string(self._mask))
        return '%s/%d' % (to_string(self._ip), prefixlen)

    def __repr__(self):
        return "%s('%s')" % (self.__class__.__name__, self.__str__())

def ip_network(txt, strict=False):
    """Take an "address[/mask]" string and return an IPNetwork.

    Args:
        txt: A string, as accepted by parse_ip_mask()
        strict: A boolean. If True, ensure that the IP address is a
            true network address, i.e. the host bits must all be zero.

    Returns:
        An IPNetwork with the host bits of the address cleared.

    Raises:
        AddressValueError, NetmaskValueError: if txt cannot be parsed.
        ValueError: if strict is True and any host bits are set.
    """
    address, mask = parse_ip_mask(txt)
    net = IPNetwork(address, mask)
    network_address = mask_ip(address, net.mask)
    if strict and network_address != address:
        raise ValueError('%r has host bits set' % (txt,))
    return IPNetwork(network_address, net.mask)

def broadcast(network):
    """Return the broadcast address of a network, ip | ~mask.

    Example:
        broadcast(192.0.2.0/24) -> 192.0.2.255
    """
    address = ip(network.ip)
    mask = as_mask(network.mask, len(address)) or b'\xff' * len(address)
    return bytes(x | ~m & 0xff for x, m in zip(address, mask))

def next_subnet(network):
    """Return the next subnet of the same size.

    Example:
        next_subnet(192.0.2.0/24) -> 192.0.3.0/24
    """
    return IPNetwork(next_ip(broadcast(network)), network.mask)

def prev_subnet(network):
    """Return the previous subnet of the same size.

    Example:
        prev_subnet(192.0.2.0/24) -> 192.0.1.0/24
    """
    return IPNetwork(mask_ip(prev_ip(network.ip), network.mask), network.mask)

def contains(outer, inner):
    """Check if the outer network wholly contains the inner one.

    If either network has a non-contiguous mask the result is undefined.
    """
    if not isinstance(outer, IPNetwork):
        outer = IPNetwork(outer.ip, outer.mask)
    return inner.ip in outer and broadcast(inner) in outer
