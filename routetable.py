#!/usr/bin/env python

"""The table of routes learned from RIP, reconciled against a RouteSink."""

# routetable.py
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

import collections
import logging
import time

import util  # registers the debug1..debug5 log levels
from sysiface import ModifyRouteError


class RouteKey(collections.namedtuple("RouteKey", "network prefixlen")):
    __slots__ = ()

    def __str__(self):
        return "%s/%d" % (self.network, self.prefixlen)


class RouteState(object):
    def __init__(self, nexthop, tag, last_refresh):
        self.nexthop = nexthop
        self.tag = tag
        self.last_refresh = last_refresh

    def __repr__(self):
        return "RouteState(nexthop=%s, tag=%d, last_refresh=%d)" % \
               (self.nexthop, self.tag, self.last_refresh)


class RouteTable(object):
    """Routes we believe are installed. This is the only copy of that
    knowledge: a failing sink never rolls it back, the next advertisement
    from upstream fixes things up."""

    # Routes which are no longer advertised are used for a week, so that
    # if the RIP announcer stops the network won't go down right away.
    DEFAULT_TTL = 7 * 24 * 60 * 60

    def __init__(self, sink, ttl=DEFAULT_TTL, clock=time.time):
        """sink -- a sysiface.RouteSink.
        ttl -- seconds to keep a route without a refreshing advertisement.
        clock -- returns the current time in seconds."""
        self.log = logging.getLogger("RIP")
        self._sink = sink
        self.ttl = ttl
        self._clock = clock
        self._routes = {}

    def __len__(self):
        return len(self._routes)

    def __iter__(self):
        return iter(sorted(self._routes.items()))

    def __contains__(self, key):
        return key in self._routes

    def get(self, key):
        return self._routes.get(key)

    def now(self):
        return self._clock()

    def consider(self, network, prefixlen, nexthop, tag):
        """Consider adding a route in the routing table. Returns True if the
        sink was asked to change anything."""
        key = RouteKey(network, prefixlen)
        now = self._clock()

        current = self._routes.get(key)
        if current is not None and \
           current.nexthop == nexthop and \
           current.tag == tag:
            self.log.debug5("Route %s is installed and current." % (key,))
            current.last_refresh = now
            return False

        self.log.info("Route %s updated: via %s tag %d" % (key, nexthop, tag))
        self._routes[key] = RouteState(nexthop, tag, now)

        # Delete first even if the route is new: the kernel may still hold
        # a copy we don't know about.
        self._withdraw(key)
        self._install(key, nexthop)
        return True

    def expire_routes(self, now=None, ttl=None):
        """Withdraw routes which have not been refreshed within ttl seconds.
        Returns the keys of the expired routes."""
        if now is None:
            now = self._clock()
        if ttl is None:
            ttl = self.ttl
        exp_t = now - ttl

        self.log.debug2("Expiring routes not refreshed since %d." % exp_t)
        expired = []
        for key, state in sorted(self._routes.items()):
            if state.last_refresh < exp_t:
                self.log.info("Route %s has expired, deleting." % (key,))
                self._withdraw(key)
                del self._routes[key]
                expired.append(key)
            elif state.last_refresh > now:
                # The clock has jumped backwards. Pull the timestamp back
                # to now so that the route will be expired eventually.
                self.log.debug1("Route %s was refreshed in the future, "
                                "resetting its timer." % (key,))
                state.last_refresh = now
        return expired

    def flush(self):
        """Withdraw every route we have installed."""
        self.log.info("Withdrawing %d learned route(s)." % len(self._routes))
        for key in sorted(self._routes):
            self._withdraw(key)
        self._routes.clear()

    def _withdraw(self, key):
        try:
            self._sink.withdraw(key.network, key.prefixlen)
        except ModifyRouteError as e:
            self.log.warning("Route delete failed for %s: %s" % (key, e))
        except Exception:
            self.log.warning("Route delete failed for %s:" % (key,),
                             exc_info=True)

    def _install(self, key, nexthop):
        try:
            self._sink.install(key.network, key.prefixlen, nexthop)
        except ModifyRouteError as e:
            self.log.warning("Route add failed for %s via %s: %s" %
                             (key, nexthop, e))
        except Exception:
            self.log.warning("Route add failed for %s via %s:" %
                             (key, nexthop), exc_info=True)
