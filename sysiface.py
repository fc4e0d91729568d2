#!/usr/bin/env python

"""Interface to the OS."""

# sysiface.py
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
import logging
import os
import re
import subprocess

import util  # registers the debug1..debug5 log levels


class RouteSink(object):
    """Abstract class for the routing table RIP routes end up in. These are
    the methods that need to be overridden by a subclass in order to make
    rip44d install routes somewhere else.

    Both operations must be idempotent: withdrawing a route that does not
    exist and installing a route that is already there are not errors.
    Failures are reported by raising ModifyRouteError."""

    def install(self, net, preflen, nexthop):
        """Install a route in the system routing table.

        Override in subclass."""
        raise NotImplementedError

    def withdraw(self, net, preflen):
        """Uninstall a route from the system routing table.

        Override in subclass."""
        raise NotImplementedError

    def setup(self, gateway=None):
        """Prepare the system for receiving RIP updates. Called once at
        startup."""
        pass


class LinuxRouteSink(RouteSink):
    """Install routes into the Linux routing table using iproute2."""

    IP_CMD = "/sbin/ip"
    # tcp window to set on the routes
    TCP_WINDOW = 840
    NO_ROUTE = "No such process"

    def __init__(self, tunnel_if="tunl0", table=None):
        """Args:
        tunnel_if -- the tunnel interface routes are pointed at.
        table -- an alternate routing table to insert routes into, by name
            or number. None uses the main table."""
        self.log = logging.getLogger("System")
        self.tunnel_if = tunnel_if
        self.table = table
        self.phy_ifaces = []
        self.logical_ifaces = []

        # Error messages are matched below, keep them in English.
        self._env = dict(os.environ, LANG="C")

    def _table_args(self):
        if self.table is None:
            return []
        return ["table", str(self.table)]

    def _run(self, operation, args):
        cmd = [self.IP_CMD] + args
        self.log.debug4("Running %s" % " ".join(cmd))
        try:
            return subprocess.check_output(cmd, stderr=subprocess.STDOUT,
                                           env=self._env,
                                           universal_newlines=True)
        except subprocess.CalledProcessError as e:
            raise(ModifyRouteError(operation, e.output, cmd))
        except OSError as e:
            raise(ModifyRouteError(operation, str(e), cmd))

    def setup(self, gateway=None):
        """Enable multicast on the tunnel interface, the flag is not set by
        default. Then set up a route pointing towards the gateway on the
        tunnel interface, so that rp_filter (strict reverse path filtering)
        will not make the kernel drop its packets."""
        self._run("multicast_enable",
                  ("link set dev %s multicast on" % self.tunnel_if).split())

        if gateway is None:
            return
        args = ("route add %s/32 dev %s" % (gateway, self.tunnel_if)).split()
        try:
            self._run("gateway_install", args + self._table_args())
        except ModifyRouteError as e:
            # Most likely it's already there from a previous run.
            self.log.debug1("Gateway route not added: %s" % e)

    def withdraw(self, net, preflen):
        args = ("route del %s/%d" % (net, preflen)).split()
        try:
            self._run("route_uninstall", args + self._table_args())
        except ModifyRouteError as e:
            if e.output and self.NO_ROUTE in e.output:
                self.log.debug5("Route %s/%d was not installed." %
                                (net, preflen))
                return
            raise

    def install(self, net, preflen, nexthop):
        args = ("route add %s/%d via %s dev %s window %d onlink" %
                (net, preflen, nexthop, self.tunnel_if,
                 self.TCP_WINDOW)).split()
        self._run("route_install", args + self._table_args())

    def update_interface_info(self):
        """Updates self according to the current state of physical and logical
        IPv4 interfaces on the device."""
        ip_output = self._run("show_addresses", "-4 -o addr show".split())

        self.phy_ifaces = []
        self.logical_ifaces = []
        phy_by_name = {}
        for line in ip_output.splitlines():
            # 5: tunl0    inet 44.1.2.3/32 scope global tunl0\ ...
            m = re.match(r"\d+:\s+([^\s@]+)\S*\s+inet\s+(\S+)", line)
            if not m:
                continue
            name, addr = m.groups()
            if name not in phy_by_name:
                phy_by_name[name] = PhysicalInterface(name)
                self.phy_ifaces.append(phy_by_name[name])
            logical_iface = LogicalInterface(phy_by_name[name], addr)
            self.log.debug1("Found local address %s on %s." %
                            (logical_iface.ip.ip.exploded, name))
            self.logical_ifaces.append(logical_iface)

    def local_addresses(self):
        return [iface.ip.ip.exploded for iface in self.logical_ifaces]

    def interface_address(self, name):
        """Returns the first address on interface name, or None."""
        for iface in self.logical_ifaces:
            if iface.phy_iface.name == name:
                return iface.ip.ip.exploded
        return None


class PhysicalInterface(object):
    def __init__(self, name):
        self.name = name


class LogicalInterface(object):
    def __init__(self, phy_iface, ip):
        self.phy_iface = phy_iface
        self.ip = ipaddr.IPv4Network(ip)


class ModifyRouteError(Exception):
    def __init__(self, operation, output=None, cmd=None):
        Exception.__init__(self, operation, output)
        self.operation = operation
        self.output = output
        self.cmd = cmd

    def __str__(self):
        output = (self.output or "").strip()
        if self.cmd:
            return "%s: '%s': %s" % (self.operation, " ".join(self.cmd),
                                     output)
        return "%s: %s" % (self.operation, output)
