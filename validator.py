#!/usr/bin/env python

"""Safety policy for advertised routes."""

# validator.py
# Copyright (C) 2012 Patrick F. Allen
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation; either version 2
# of the License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston, MA 02110-1301, USA.

import ipaddr

from ripmsg import RIPRouteEntry

OK = "ok"
UNSUPPORTED_AF = "unsupported address family"
INVALID_NETMASK = "invalid netmask"
PREFIX_TOO_SHORT = "prefix length too short"
INVALID_SUBNET_MASK_PAIR = "invalid subnet-netmask pair"
NET_NOT_MANAGED = "net not in managed network"
NEXTHOP_IN_MANAGED_NET = "nexthop is in managed network"
NEXTHOP_IS_LOCAL_GATEWAY = "local gw"


def _addr_to_int(addr):
    if isinstance(addr, int):
        return addr
    return int(ipaddr.IPv4Address(addr))


class ManagedNetwork(object):
    """The address range we are allowed to install routes for."""

    DEFAULT = "44.0.0.0/8"

    def __init__(self, network=DEFAULT):
        # Accept a host address in the network too, e.g. 44.1.2.3/8.
        parsed = ipaddr.IPv4Network(network)
        self.network = ipaddr.IPv4Network("%s/%d" % (parsed.network.exploded,
                                                     parsed.prefixlen))
        self._net_i = int(self.network.network)
        self._mask_i = int(self.network.netmask)

    def __repr__(self):
        return "ManagedNetwork(%s)" % self.network

    def __contains__(self, addr):
        return _addr_to_int(addr) & self._mask_i == self._net_i


class LocalAddressSet(object):
    """Addresses owned by this machine. Routes pointing to them are
    ignored."""

    def __init__(self, addrs=None):
        self._addrs = set()
        if addrs:
            self.update(addrs)

    def add(self, addr):
        self._addrs.add(_addr_to_int(addr))

    def update(self, addrs):
        for addr in addrs:
            self.add(addr)

    def __contains__(self, addr):
        return _addr_to_int(addr) in self._addrs

    def __len__(self):
        return len(self._addrs)

    def __iter__(self):
        for addr in sorted(self._addrs):
            yield ipaddr.IPv4Address(addr).exploded


class RouteValidator(object):
    """Validate a route entry, make sure we can rather safely insert it in
    the routing table."""

    DEFAULT_MIN_PREFIXLEN = 14

    def __init__(self, min_prefixlen=DEFAULT_MIN_PREFIXLEN, managed=None,
                 local_addresses=None):
        """min_prefixlen -- routes less specific than this are refused.
        managed -- a ManagedNetwork, defaults to 44.0.0.0/8.
        local_addresses -- a LocalAddressSet of next hops to refuse."""
        self.min_prefixlen = min_prefixlen
        self.managed = managed if managed is not None else ManagedNetwork()
        if local_addresses is None:
            local_addresses = LocalAddressSet()
        self.local_addresses = local_addresses

    def validate(self, net, mask, prefixlen, nexthop):
        """Returns (accepted, reason). The checks run in a fixed order and
        the first failing one decides the reason."""
        # netmask is correct and not too wide
        if prefixlen < 0:
            return (False, INVALID_NETMASK)

        if prefixlen < self.min_prefixlen:
            return (False, PREFIX_TOO_SHORT)

        # the network-netmask pair makes sense: network & netmask == network
        if net & mask != net:
            return (False, INVALID_SUBNET_MASK_PAIR)

        if net not in self.managed:
            return (False, NET_NOT_MANAGED)

        # a nexthop inside the managed network would loop through the tunnel
        if nexthop in self.managed:
            return (False, NEXTHOP_IN_MANAGED_NET)

        if nexthop in self.local_addresses:
            return (False, NEXTHOP_IS_LOCAL_GATEWAY)

        return (True, OK)

    def validate_entry(self, rte):
        if rte.afi != RIPRouteEntry.AF_INET:
            return (False, UNSUPPORTED_AF)
        return self.validate(rte.network_i, rte.mask_i, rte.prefixlen,
                             rte.nexthop_i)
