#!/usr/bin/env python

"""A paranoid RIPv2 receiver which installs routes advertised by the 44/8
AMPRNet route announcer into the Linux routing table."""

# rip44d.py
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

import binascii
import fcntl
import ipaddr
import logging
import logging.config
import logging.handlers
import optparse
import os
import sys
import time
import traceback
from twisted.internet import protocol
from twisted.internet import reactor
from twisted.python import log

import ripadmin
import ripauth
import ripmsg
import sysiface
import util
import validator
from routetable import RouteTable

__version__ = "1.5"

RIP_GROUP = "224.0.0.9"
RIP_PORT = 520


class UntrustedSource(ripmsg.RIP44Error):
    pass


class Config(object):
    """Everything rip44d needs to know from its environment."""

    def __init__(self, tunnel_if="tunl0", password=None,
                 local_addresses=None, table=None,
                 managed_net=validator.ManagedNetwork.DEFAULT,
                 min_prefixlen=validator.RouteValidator.DEFAULT_MIN_PREFIXLEN,
                 route_ttl=RouteTable.DEFAULT_TTL, expire_interval=60 * 60,
                 gateway="44.0.0.1", port=RIP_PORT, admin_port=0,
                 log_config="logging.conf", syslog=False, verbosity=0,
                 pid_file="/var/run/rip44d.pid", cleanup=False):
        if password is not None and len(password.encode("ascii")) > 16:
            raise(ValueError("Password too long (>16 bytes)."))
        if not 0 <= min_prefixlen <= 32:
            raise(ValueError("Minimum prefix length must be 0-32."))
        if route_ttl <= 0 or expire_interval <= 0:
            raise(ValueError("Route TTL and expire interval must be "
                             "positive."))

        self.tunnel_if = tunnel_if
        self.password = password
        self.local_addresses = [ipaddr.IPv4Address(a).exploded
                                for a in (local_addresses or [])]
        self.table = table
        self.managed_net = validator.ManagedNetwork(managed_net)
        self.min_prefixlen = min_prefixlen
        self.route_ttl = route_ttl
        self.expire_interval = expire_interval
        self.gateway = ipaddr.IPv4Address(gateway).exploded if gateway \
                       else None
        self.port = port
        self.admin_port = admin_port
        self.log_config = log_config
        self.syslog = syslog
        self.verbosity = verbosity
        self.pid_file = pid_file
        self.cleanup = cleanup

    @classmethod
    def from_options(cls, options):
        local_addresses = []
        if options.local_addresses:
            local_addresses = [a.strip() for a in
                               options.local_addresses.split(",")
                               if a.strip()]
        return cls(tunnel_if=options.interface,
                   password=options.password,
                   local_addresses=local_addresses,
                   table=options.table,
                   managed_net=options.managed_net,
                   min_prefixlen=options.min_prefixlen,
                   route_ttl=options.route_ttl,
                   expire_interval=options.expire_interval,
                   gateway=options.gateway,
                   port=options.rip_port,
                   admin_port=options.admin_port,
                   log_config=options.log_config,
                   syslog=options.syslog,
                   verbosity=options.verbosity,
                   pid_file=options.pid_file,
                   cleanup=options.cleanup)


class RIP44Processor(object):
    """Turns received datagrams into route table changes. Knows nothing
    about sockets; the reactor hands it one datagram at a time."""

    def __init__(self, table, route_validator, password=None,
                 trusted_peer=None, expire_interval=60 * 60,
                 clock=time.time):
        """table -- the RouteTable to reconcile accepted routes into.
        route_validator -- a validator.RouteValidator.
        password -- if set, every message must start with a simple password
            authentication entry carrying it.
        trusted_peer -- if set, a (host, port) tuple. Messages from anywhere
            else are refused.
        expire_interval -- seconds between opportunistic expiry sweeps."""
        self.log = logging.getLogger("RIP")
        self.table = table
        self.validator = route_validator
        self.password = password
        self.trusted_peer = trusted_peer
        self.expire_interval = expire_interval
        self._clock = clock
        self._next_expire = clock() + expire_interval

    @classmethod
    def from_config(cls, config, sink, local_addresses, clock=time.time):
        table = RouteTable(sink, ttl=config.route_ttl, clock=clock)
        route_validator = validator.RouteValidator(
                              min_prefixlen=config.min_prefixlen,
                              managed=config.managed_net,
                              local_addresses=local_addresses)
        trusted_peer = None
        if config.gateway:
            trusted_peer = (config.gateway, config.port)
        return cls(table, route_validator, password=config.password,
                   trusted_peer=trusted_peer,
                   expire_interval=config.expire_interval, clock=clock)

    def process_message(self, source, data):
        """Process one datagram received from source, a (host, port) tuple.

        Returns the number of accepted route entries. Raises a RIP44Error
        subclass if the whole message is refused. Entries failing validation
        are skipped and logged, and are not an error."""
        host, port = source
        if self.trusted_peer is not None and \
           (host, port) != self.trusted_peer:
            raise(UntrustedSource("ignored packet from %s:%d" % (host, port)))

        msg = ripmsg.decode(data)
        self.log.debug5(msg)

        rtes = msg.rtes
        # if password auth is required, require it!
        if self.password is not None:
            ripauth.require_auth(rtes[0], self.password)
            rtes = rtes[1:]

        routes = 0
        for rawentry in rtes:
            routes += self.process_entry(rawentry)
        return routes

    def process_entry(self, rawentry):
        """Returns 1 if the entry was handed to the route table, 0 if it
        was skipped."""
        rte = ripmsg.decode_entry(rawentry)
        if ripauth.is_auth_entry(rte):
            self.log.debug2("Skipping authentication entry outside of the "
                            "first position.")
            return 0

        accepted, reason = self.validator.validate_entry(rte)
        if not accepted:
            if reason == validator.PREFIX_TOO_SHORT:
                self.log.warning("%s/%s => %s blocked, prefix too short" %
                                 (rte.network, rte.mask, rte.nexthop))
            else:
                self.log.debug2("Entry ignored (%s): %s" % (reason, rte))
            return 0

        self.log.debug4("Entry: %s" % rte)
        self.table.consider(rte.network, rte.prefixlen, rte.nexthop, rte.tag)
        return 1

    def maybe_expire(self):
        """Consider expiring old routes. Also notices the clock jumping
        backwards by more than an interval."""
        now = self._clock()
        if now > self._next_expire or \
           self._next_expire > now + self.expire_interval:
            self._next_expire = now + self.expire_interval
            self.log.debug1("Expiring old routes.")
            return self.table.expire_routes(now)
        return []


class RIP44(protocol.DatagramProtocol):
    """Receives RIPv2 multicasts using the twisted asynchronous networking
    framework.

    Expiry only happens after a datagram was received. If the RIP announcer
    dies, the learned routes do not time out."""

    def __init__(self, processor, iface_ip=None, cleanup=False):
        """processor -- a RIP44Processor.
        iface_ip -- the address of the interface to join the RIP group on.
            None lets the kernel pick one.
        cleanup -- if True, withdraw all learned routes on shutdown."""
        self.log = logging.getLogger("RIP")
        self.processor = processor
        self.iface_ip = iface_ip
        self.cleanup = cleanup

    def startProtocol(self):
        self.log.info("Joining %s on %s." % (RIP_GROUP,
                                             self.iface_ip or "any"))
        d = self.transport.joinGroup(RIP_GROUP, self.iface_ip or "")
        d.addErrback(self._join_failed)

    def _join_failed(self, failure):
        self.log.error("Could not join %s: %s" % (RIP_GROUP,
                                                  failure.getErrorMessage()))

    def stopProtocol(self):
        self.log.info("rip44d is shutting down.")
        if self.cleanup:
            self.processor.table.flush()

    def datagramReceived(self, data, addr):
        host, port = addr
        self.log.debug2("Received from %s:%d: %d bytes" % (host, port,
                                                            len(data)))
        try:
            routes = self.processor.process_message(addr, data)
        except UntrustedSource as e:
            self.log.debug1("%s: %d bytes" % (e, len(data)))
        except ripmsg.RIP44Error as e:
            self.log.debug1("Ignored packet from %s: %s" % (host, e))
            self.log.debug5("Hex dump: %s" %
                            binascii.hexlify(data).decode("ascii"))
        except Exception:
            self.log.error("Failed to process packet from %s:\n%s" %
                           (host, traceback.format_exc()))
        else:
            self.log.debug1("Processed %d route entries." % routes)

        try:
            self.processor.maybe_expire()
        except Exception:
            self.log.error("Failed to expire routes:\n%s" %
                           traceback.format_exc())


def init_logging(config):
    if os.path.exists(config.log_config):
        logging.config.fileConfig(config.log_config,
                                  disable_existing_loggers=True)
    else:
        logging.basicConfig(format="%(asctime)s - %(name)s - "
                                   "%(levelname)s - %(message)s")

    if config.syslog:
        handler = logging.handlers.SysLogHandler(address="/dev/log")
        handler.setFormatter(logging.Formatter("rip44d[%(process)d]: "
                                               "%(message)s"))
        logging.getLogger().addHandler(handler)

    if config.verbosity:
        level = {1: "DEBUG1", 2: "DEBUG5"}[config.verbosity]
        for name in ("RIP", "System"):
            logging.getLogger(name).setLevel(level)

def writepid(path):
    """Write and lock the pid file. The returned file must be kept open
    for as long as the lock should be held."""
    pf = open(path, "a+")
    try:
        fcntl.flock(pf, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except (IOError, OSError):
        pf.close()
        raise
    pf.truncate(0)
    pf.seek(0)
    pf.write("%d\n" % os.getpid())
    pf.flush()
    return pf

def parse_args(argv):
    op = optparse.OptionParser(version="%prog " + __version__)
    op.add_option("-i", "--interface", default="tunl0",
                  help="Use the specified tunnel interface (tunl0)")
    op.add_option("-p", "--password",
                  help="Use RIPv2 password 'authentication' (none)")
    op.add_option("-a", "--local-addresses",
                  help="Comma separated list of gateways to ignore routes "
                       "pointing to. The system's local IP addresses are "
                       "always included.")
    op.add_option("-t", "--table",
                  help="Insert routes in an alternate routing table")
    op.add_option("-m", "--managed-net", default="44.0.0.0/8",
                  help="Only accept routes within this network (44.0.0.0/8)")
    op.add_option("-n", "--min-prefixlen", type="int", default=14,
                  help="Do not accept routes less specific than this (14)")
    op.add_option("-T", "--route-ttl", type="int", default=7 * 24 * 60 * 60,
                  help="Seconds to keep using routes which are no longer "
                       "advertised (604800)")
    op.add_option("-e", "--expire-interval", type="int", default=60 * 60,
                  help="Seconds between checks for expired routes (3600)")
    op.add_option("-g", "--gateway", default="44.0.0.1",
                  help="Only accept RIP packets from this address (44.0.0.1). "
                       "An empty string accepts any source.")
    op.add_option("-r", "--rip-port", type="int", default=RIP_PORT,
                  help="RIP port number to use (520)")
    op.add_option("-P", "--admin-port", type="int", default=0,
                  help="Admin telnet interface port number to use on "
                       "localhost (disabled)")
    op.add_option("-l", "--log-config", default="logging.conf",
                  help="The logging configuration file "
                       "(default logging.conf).")
    op.add_option("-s", "--syslog", default=False, action="store_true",
                  help="Log to syslog as well")
    op.add_option("-v", "--verbose", dest="verbosity", action="store_const",
                  const=1, default=0,
                  help="Increase verbosity slightly")
    op.add_option("-d", "--debug", dest="verbosity", action="store_const",
                  const=2, help="Increase verbosity greatly")
    op.add_option("-L", "--pid-file", default="/var/run/rip44d.pid",
                  help="Write process ID to this file "
                       "(/var/run/rip44d.pid)")
    op.add_option("-c", "--cleanup", default=False, action="store_true",
                  help="Remove learned routes when exiting")

    options, arguments = op.parse_args(argv[1:])
    if arguments:
        op.error("Unexpected non-option argument(s): '" +
                 " ".join(arguments) + "'")

    try:
        config = Config.from_options(options)
    except (ValueError, ipaddr.AddressValueError,
            ipaddr.NetmaskValueError) as e:
        op.error(str(e))

    return options, config

def main(argv):
    options, config = parse_args(argv)

    # Must run as root to manipulate the routing table.
    if not util.is_admin():
        sys.stderr.write("Must run as a privileged user (root). Exiting.\n")
        return 1

    init_logging(config)
    rip_log = logging.getLogger("RIP")
    log.addObserver(lambda msg: util.suppress_reactor_not_running(
                                    msg, rip_log.debug1))

    try:
        pidfile = writepid(config.pid_file)
    except (IOError, OSError) as e:
        sys.stderr.write("Could not lock pid file %s (other copy already "
                         "running?): %s\n" % (config.pid_file, e))
        return 1

    sink = sysiface.LinuxRouteSink(config.tunnel_if, config.table)
    try:
        sink.update_interface_info()
        sink.setup(config.gateway)
    except sysiface.ModifyRouteError as e:
        sys.stderr.write("Could not set up %s: %s\n" % (config.tunnel_if, e))
        return 1

    local_addresses = validator.LocalAddressSet(sink.local_addresses())
    local_addresses.update(config.local_addresses)

    processor = RIP44Processor.from_config(config, sink, local_addresses)
    rip = RIP44(processor, sink.interface_address(config.tunnel_if),
                cleanup=config.cleanup)

    if config.admin_port:
        ripadmin.start(processor, port=config.admin_port)

    rip_log.info("Entering main loop, waiting for RIPv2 datagrams.")
    reactor.listenMulticast(config.port, rip, listenMultiple=True)
    reactor.run()
    pidfile.close()
    return 0

def run():
    sys.exit(main(sys.argv))

if __name__ == "__main__":
    run()
