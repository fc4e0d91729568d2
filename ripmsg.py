#!/usr/bin/env python

"""RIPv2 message decoding for rip44d."""

# ripmsg.py
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

import struct
import ipaddr


class RIP44Error(Exception):
    def __init__(self, message=""):
        Exception.__init__(self, message)
        self.message = message


class FormatException(RIP44Error):
    """The datagram is not a RIPv2 response we are willing to look at."""
    pass


class TooShort(FormatException):
    pass


class TooLong(FormatException):
    pass


class MisalignedLength(FormatException):
    pass


class UnsupportedCommand(FormatException):
    pass


class UnsupportedVersion(FormatException):
    pass


class NonZeroReserved(FormatException):
    pass


def mask2prefix(mask):
    """Convert a netmask (in integer form) to the corresponding prefix
    length, and validate it too. Returns -1 unless the mask is a continuous
    row of 1's followed by a continuous row of 0's."""
    inverted = ~mask & 0xffffffff
    # The host part must be of the form 0...01...1
    if inverted & (inverted + 1):
        return -1
    return 32 - inverted.bit_length()

def prefix2mask(preflen):
    """Convert a prefix length into a netmask in integer form."""
    return int(ipaddr.IPv4Network("0.0.0.0/%d" % preflen).netmask)


class RIPHeader(object):
    FORMAT = ">BBH"
    SIZE = struct.calcsize(FORMAT)
    TYPE_REQUEST = 1
    TYPE_RESPONSE = 2
    VERSION = 2

    def __init__(self, rawdata=None, cmd=None, ver=None):
        if cmd is not None and ver is not None:
            self._init_from_host(cmd, ver)
        elif rawdata is not None:
            self._init_from_net(rawdata)
        else:
            raise(ValueError)

    def __repr__(self):
        return "RIPHeader(cmd=%d, ver=%d)" % (self.cmd, self.ver)

    def _init_from_net(self, rawdata):
        """Init from data received from the network. Only version 2
        responses are accepted."""
        self.cmd, self.ver, zero = struct.unpack(self.FORMAT, rawdata)

        if self.cmd != self.TYPE_RESPONSE:
            raise(UnsupportedCommand("ignored non-response RIP packet "
                                     "(command %d)" % self.cmd))
        if self.ver != self.VERSION:
            raise(UnsupportedVersion("ignored RIP version %d packet "
                                     "(only accept v2)" % self.ver))
        if zero != 0:
            raise(NonZeroReserved("zero bytes are not zero in header"))

    def _init_from_host(self, cmd, ver):
        """Init from data provided by the application."""
        self.cmd = cmd
        self.ver = ver

    def serialize(self, reserved=0):
        return struct.pack(self.FORMAT, self.cmd, self.ver, reserved)


class RIPPacket(object):
    MAX_RTES = 25

    def __init__(self, data=None, hdr=None, rtes=None):
        """Create a RIP packet either from the binary data received from the
        network, or from a RIP header and a list of entries.

        rtes always holds the raw 20 byte records, in packet order. They are
        interpreted one at a time with decode_entry()."""
        if data is not None:
            self._init_from_net(data)
        elif hdr is not None and rtes is not None:
            self._init_from_host(hdr, rtes)
        else:
            raise(ValueError)

    def __repr__(self):
        return "RIPPacket: Command %d, Version %d, number of RTEs %d." % \
                (self.hdr.cmd, self.hdr.ver, len(self.rtes))

    def _init_from_net(self, data):
        datalen = len(data)
        if datalen < RIPHeader.SIZE + RIPRouteEntry.SIZE:
            raise(TooShort("ignored too short packet: %d" % datalen))

        if datalen > RIPHeader.SIZE + RIPRouteEntry.SIZE * self.MAX_RTES:
            raise(TooLong("ignored too long packet: %d" % datalen))

        if (datalen - RIPHeader.SIZE) % RIPRouteEntry.SIZE:
            raise(MisalignedLength("ignored invalid length packet: %d" %
                                   datalen))

        self.hdr = RIPHeader(data[0:RIPHeader.SIZE])

        self.rtes = []
        for rte_start in range(RIPHeader.SIZE, datalen, RIPRouteEntry.SIZE):
            self.rtes.append(data[rte_start:rte_start + RIPRouteEntry.SIZE])

    def _init_from_host(self, hdr, rtes):
        self.hdr = hdr
        self.rtes = [rte.serialize() for rte in rtes]

    def entries(self):
        for raw in self.rtes:
            yield decode_entry(raw)

    def serialize(self, reserved=0):
        """Return a bytestring representing this packet in a form that
        can be transmitted across the network."""
        return self.hdr.serialize(reserved) + b"".join(self.rtes)


class RIPSimpleAuthEntry(object):
    """Simple plain text password authentication as defined in RFC 1723
    section 3.1."""
    FORMAT = ">HH16s"
    SIZE = struct.calcsize(FORMAT)
    AFI = 0xffff
    TYPE_PASSWORD = 0x0002

    def __init__(self, rawdata=None, password=None,
                 auth_type=TYPE_PASSWORD):
        """password should be the plain text password to use and must not
        be longer than 16 bytes."""
        if rawdata is not None and password is not None:
            raise(ValueError("only one of rawdata or password are allowed."))
        elif rawdata is not None:
            self._init_from_net(rawdata)
        elif password is not None:
            self.afi = self.AFI
            self.auth_type = auth_type
            self.password = password
        else:
            raise(ValueError("rawdata or password must be provided."))

    def __repr__(self):
        return "RIPSimpleAuthEntry(auth_type=%d)" % self.auth_type

    @property
    def password(self):
        return self._password

    @password.setter
    def password(self, password):
        if not isinstance(password, bytes):
            password = password.encode("ascii")
        if len(password) > 16:
            raise(ValueError("Password too long (>16 bytes)."))
        self._password = password

    def _init_from_net(self, rawdata):
        self.afi, self.auth_type, password = struct.unpack(self.FORMAT,
                                                           rawdata)
        # it's null-padded in the end
        self.password = password.rstrip(b"\0")

    def serialize(self):
        return struct.pack(self.FORMAT, self.afi, self.auth_type,
                           self.password)


class RIPRouteEntry(object):
    FORMAT = ">HHIIII"
    SIZE = struct.calcsize(FORMAT)
    AF_INET = 2

    def __init__(self, rawdata=None, address=None, mask=None, nexthop=None,
                 metric=1, tag=0, afi=AF_INET):
        """address, mask and nexthop may be given as dotted quads or as
        integers."""
        if rawdata is not None:
            self._init_from_net(rawdata)
        elif address is not None and \
             mask    is not None and \
             nexthop is not None:
            self.afi = afi
            self.tag = tag
            self.network_i = int(ipaddr.IPv4Address(address))
            self.mask_i = int(ipaddr.IPv4Address(mask))
            self.nexthop_i = int(ipaddr.IPv4Address(nexthop))
            self.metric = metric
        else:
            raise(ValueError)

    def _init_from_net(self, rawdata):
        """Init from data received on the network. The fields are taken
        as-is: it's up to the validator to decide what makes sense."""
        (self.afi, self.tag, self.network_i, self.mask_i, self.nexthop_i,
         self.metric) = struct.unpack(self.FORMAT, rawdata)

    @property
    def network(self):
        return ipaddr.IPv4Address(self.network_i).exploded

    @property
    def mask(self):
        return ipaddr.IPv4Address(self.mask_i).exploded

    @property
    def nexthop(self):
        return ipaddr.IPv4Address(self.nexthop_i).exploded

    @property
    def prefixlen(self):
        return mask2prefix(self.mask_i)

    def __repr__(self):
        return "RIPRouteEntry(afi=%d, tag=%d, address=%s, mask=%s, " \
               "nexthop=%s, metric=%d)" % (self.afi, self.tag, self.network,
                                           self.mask, self.nexthop,
                                           self.metric)

    def __eq__(self, other):
        if not isinstance(other, RIPRouteEntry):
            return NotImplemented
        return self.serialize() == other.serialize()

    def __hash__(self):
        return hash(self.serialize())

    def serialize(self):
        """Format into the RIPv2 route entry format from RFC 2453
        section 4."""
        return struct.pack(self.FORMAT, self.afi, self.tag, self.network_i,
                           self.mask_i, self.nexthop_i, self.metric)


def decode(data):
    """Decode and validate a datagram. Raises a FormatException subclass
    if the datagram is not an acceptable RIPv2 response."""
    return RIPPacket(data=data)

def decode_entry(rawdata):
    """Interpret one raw record as either an authentication entry or a route
    entry."""
    if len(rawdata) < RIPRouteEntry.SIZE:
        raise(TooShort("entry is %d bytes, expected %d" %
                       (len(rawdata), RIPRouteEntry.SIZE)))
    if len(rawdata) > RIPRouteEntry.SIZE:
        raise(MisalignedLength("entry is %d bytes, expected %d" %
                               (len(rawdata), RIPRouteEntry.SIZE)))
    afi, = struct.unpack(">H", rawdata[0:2])
    if afi == RIPSimpleAuthEntry.AFI:
        return RIPSimpleAuthEntry(rawdata=rawdata)
    return RIPRouteEntry(rawdata=rawdata)
