#!/usr/bin/env python
"""Performance tests for the eipcalc and eipwildcard modules.

Each test times the standard ipaddress module doing the same job with
integer arithmetic, then the packed byte arithmetic of eipcalc.
"""

import sys
import time

import ipaddress as ip

import eipcalc as eip
from eipwildcard import Wildcard, find_wildcard

# =============================================================================

class TextFx:
    '''Terminal strings for text effects.'''

    RESET               = '\033[0m'
    YELLOW              = '\033[33m'
    BOLD_RED            = '\033[91m'
    BOLD_MAGENTA        = '\033[95m'

# =============================================================================

def fn_name(depth = 0):
    """Get the function name from the call stack.

    Args:
        depth: call stack depth to return, 0=parent, 1=grandparent, etc.

    Returns:
        The function name from the call stack, at the depth given.
    """
    return sys._getframe(depth + 1).f_code.co_name  # pylint: disable=W0212

def has_colours(stream):
    """Determine if an output stream supports colours.

    Args:
        stream: the output stream to check

    Returns:
        True if more than 2 colours are supported; else False
    """
    if not (hasattr(stream, 'isatty') and stream.isatty()):
        return False
    try:
        import curses
        curses.setupterm()
        return curses.tigetnum('colors') > 2
    except Exception:
        return False

def as_text(result):
    """Return a result as text, packed addresses in address format."""
    if isinstance(result, bytes):
        return eip.to_string(result)
    return str(result)

def time_multi(n, fns, *args, **kwargs):
    """Time the execution of multiple functions.

    Args:
        n: number of times to call each function
        fns: a list of functions to time
        args: positional arguments to pass to each function
        kwargs: keyword arguments to pass to each function

    Returns:
        A list of tuples: (time, result)
            with the elapsed time and last return value from each function
    """
    results = []
    for fn in fns:
        start = time.perf_counter_ns()
        for i in range(n):
            result = fn(*args, **kwargs)
        elapsed = time.perf_counter_ns() - start
        results.append((elapsed, result))
    return results

def generic_test(reporter, test_id, n, fns, *args, **kwargs):
    """Run a timed test for each function in fns and report the results.

    Args:
        reporter: the Reporter object to use
        n: number of times to call each function
        fns: a list of functions to time
        args: positional arguments to pass to each function
        kwargs: keyword arguments to pass to each function
    """
    results = time_multi(n, fns, *args, **kwargs)
    reporter.report(test_id, n, results, str(args))

# =============================================================================

class Reporter(object):
    """Reporter for performance test results."""

    def __init__(self, gt_txt='SLOWER', lt_txt='faster'):
        """Initialise the report.

        Args:
            gt_txt: the reported message if time1 > time2
            lt_txt: the reported message if time1 < time2
        """
        self.gt_txt = gt_txt
        self.lt_txt = lt_txt
        self.time1 = 0.0
        self.time2 = 0.0

    @staticmethod
    def _summary(time1, time2, gt_txt, lt_txt):
        """Return the ratio of two times and a text summary of it."""
        if time1 == 0.0 or time2 == 0.0:
            return 0.0, 'NO DATA'
        if time1 == time2:
            return 1.0, 'EQUAL'
        if time2 < time1:
            ratio = time1 / time2
            return ratio, f'{ratio:.2f} times {lt_txt}'
        ratio = time2 / time1
        return ratio, f'{ratio:.2f} times {gt_txt} >>>'

    def report(self, test_id, n, results, msg):
        """Report the results.

        Args:
            n: the number of iterations
            results: a tuple ((time1, result1), (time2, result2)) where
                    time1: the ipaddress library elapsed time
                    result1: the ipaddress library result
                    time2: the eipcalc library elapsed time
                    result2: the eipcalc library result
            msg: test information
        """
        (time1, result1), (time2, result2) = results
        self.time1 += time1
        self.time2 += time2
        ratio, summary = self._summary(time1, time2, self.gt_txt, self.lt_txt)
        fx0 = TextFx.RESET
        fx1 = TextFx.BOLD_RED if time2 > time1 else ''
        fx2 = ''
        if ratio < 1.02:
            fx1 = TextFx.YELLOW
        if as_text(result1) != as_text(result2):
            suffix = f'\n    {as_text(result1)}\n    {as_text(result2)}'
            fx2 = TextFx.BOLD_MAGENTA
        else:
            suffix = ''
        if not has_colours(sys.stdout):
            fx0 = fx1 = fx2 = ''
        print(f'{fx1}{test_id}: {msg}')
        pc = (time2 * 100) / time1 if time1 else 0.0
        print(f'({n:7d}) {time1:>11,.0f} -> {time2:>11,.0f} {pc:6.1f}%  '
              f'{summary}{fx2}{suffix}{fx0}')

    @staticmethod
    def group_report(name, group, gt_txt='SLOWER', lt_txt='faster', quiet=True):
        """Report a summary of a group of results.

        Args:
            name: a name for the group
            group: the Reporter objects in this group
            gt_txt: the reported message if time1 > time2
            lt_txt: the reported message if time1 < time2
            quiet: if True, suppress reports with no data
        """
        time1 = sum(x.time1 for x in group)
        time2 = sum(x.time2 for x in group)
        if quiet and time1 == 0.0 and time2 == 0.0:
            return
        ratio, summary = Reporter._summary(time1, time2, gt_txt, lt_txt)
        fx0 = TextFx.RESET
        fx1 = TextFx.BOLD_RED if time2 > time1 else ''
        if ratio < 1.02:
            fx1 = TextFx.YELLOW
        if not has_colours(sys.stdout):
            fx0 = fx1 = ''
        pc = (time2 * 100) / time1 if time1 else 0.0
        print(f'{fx1}{name:14} {time1:>14,.0f} -> {time2:>14,.0f} {pc:6.1f}%  '
              f'{summary}{fx0}')

# =============================================================================

class PerfTest(object):
    """Performance tests for the eipcalc module."""

    def __init__(self):
        """Instantiate: build a list of test methods."""
        self._tests = [(name, fn)
                       for name, fn in sorted(self.__class__.__dict__.items())
                       if name.startswith('test_')]
        self.report_p = Reporter()      # for parsing
        self.report_a = Reporter()      # for arithmetic
        self.report_n = Reporter()      # for networks
        self.report_w = Reporter()      # for wildcards

    def run(self, matches=None):
        """Run the tests.

        Args:
            matches: sequence of strings to match test names to be run
        """
        for name, fn in self._tests:
            if matches:
                for match in matches:
                    if match in name:
                        fn(self)
                        break
            else:
                fn(self)
        Reporter.group_report('Parsing', [self.report_p])
        Reporter.group_report('Arithmetic', [self.report_a])
        Reporter.group_report('Networks', [self.report_n])
        Reporter.group_report('Wildcards', [self.report_w])
        Reporter.group_report('TOTAL', [self.report_p, self.report_a,
                                        self.report_n, self.report_w])

    # =========================================================================
    # Parsing
    # =========================================================================

    def test_ip(self):
        """Test the ip function."""
        n = 10**5
        data = [
            '192.0.2.1',
            '::ffff:192.0.2.1',
            '2001:db8::1',
            '1:2:3:4:5:6:7:8',
        ]
        fns = (lambda x: ip.ip_address(x).packed), eip.ip
        for args in data:
            generic_test(self.report_p, fn_name(), n, fns, args)

    def test_parse_ip_mask(self):
        """Test the parse_ip_mask function."""
        n = 10**4
        data = [
            '192.0.2.0/24',
            '192.0.2.0/255.255.255.0',
            '2001:db8::/64',
        ]
        fns = (lambda x: ip.ip_interface(x).netmask.packed,
               lambda x: eip.parse_ip_mask(x)[1])
        for args in data:
            generic_test(self.report_p, fn_name(), n, fns, args)

    # =========================================================================
    # Arithmetic
    # =========================================================================

    def test_next_ip(self):
        """Test the next_ip function."""
        n = 10**5
        data = [
            (ip.IPv4Address('192.0.2.255'), eip.ip('192.0.2.255')),
            (ip.IPv6Address('2001:db8::ffff'), eip.ip('2001:db8::ffff')),
        ]
        for stdlib_arg, eip_arg in data:
            results = time_multi(n, [lambda: stdlib_arg + 1,
                                     lambda: eip.next_ip(eip_arg)])
            self.report_a.report(fn_name(), n, results, str(stdlib_arg))

    def test_add(self):
        """Test the add function."""
        n = 10**5
        data = [
            ('192.0.2.255', '0.0.1.2', '0.0.1.255'),
            ('2001:db8::ff', '::ff01', '::ffff'),
        ]
        for a, b, mask in data:
            a1 = ip.ip_address(a)
            delta = int(ip.ip_address(b)) & int(ip.ip_address(mask))
            a2, b2, mask2 = eip.ip(a), eip.ip(b), eip.parse_mask(mask)
            results = time_multi(n, [lambda: a1 + delta,
                                     lambda: eip.add(a2, b2, mask2)])
            self.report_a.report(fn_name(), n, results, str((a, b, mask)))

    def test_merge(self):
        """Test the merge function."""
        n = 10**5
        a, b, mask = '192.0.2.133', '172.16.32.5', '0.0.255.255'
        i1, i2, m = (int(ip.ip_address(x)) for x in (a, b, mask))
        fns = (lambda: ip.IPv4Address(i1 & ~m | i2 & m),
               lambda: eip.merge(a, b, mask))
        results = time_multi(n, fns)
        self.report_a.report(fn_name(), n, results, str((a, b, mask)))

    # =========================================================================
    # Networks
    # =========================================================================

    def test_broadcast(self):
        """Test the broadcast function."""
        n = 10**4
        for txt in ('192.0.2.0/24', '2001:db8::/64'):
            net1, net2 = ip.ip_network(txt), eip.ip_network(txt)
            results = time_multi(n, [lambda: net1.broadcast_address,
                                     lambda: eip.broadcast(net2)])
            self.report_n.report(fn_name(), n, results, txt)

    def test_contains(self):
        """Test the contains function."""
        n = 10**4
        outer, inner = '2001:db8:a::/48', '2001:db8:a:1::/64'
        o1, i1 = ip.ip_network(outer), ip.ip_network(inner)
        o2, i2 = eip.ip_network(outer), eip.ip_network(inner)
        results = time_multi(n, [lambda: i1.subnet_of(o1),
                                 lambda: eip.contains(o2, i2)])
        self.report_n.report(fn_name(), n, results, str((outer, inner)))

    # =========================================================================
    # Wildcards
    # =========================================================================

    def test_wildcard_iter(self):
        """Test iterating over a Wildcard against a network."""
        n = 10**2
        net = ip.ip_network('192.0.2.0/24')
        wildcard = Wildcard.from_string('192.0.2.0/0.0.0.255')
        fns = (lambda: [x.packed for x in net][-1],
               lambda: list(wildcard)[-1])
        results = time_multi(n, fns)
        self.report_w.report(fn_name(), n, results, str(wildcard))

    def test_find_wildcard(self):
        """Test find_wildcard against the same reduction over integers."""
        n = 10**4
        samples = '192.0.2.1', '192.0.2.77', '192.0.2.255'

        def int_find_wildcard():
            values = [int(ip.ip_address(x)) for x in samples]
            common, differ = values[0], 0
            for value in values[1:]:
                differ |= common ^ value
                common &= value
            return ip.ip_address(common), ip.ip_address(differ)

        fns = (lambda: int_find_wildcard()[0],
               lambda: find_wildcard(*samples).ip)
        results = time_multi(n, fns)
        self.report_w.report(fn_name(), n, results, str(samples))

# =============================================================================

if __name__ == '__main__':
    matches = sys.argv[1:]
    PerfTest().run(matches)
