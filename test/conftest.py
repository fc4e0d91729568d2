import pytest
from twisted.internet import task

import ripmsg
import sysiface
import validator
from rip44d import RIP44Processor
from routetable import RouteTable

TTL = 7 * 24 * 60 * 60
LOCAL_GW = "192.0.2.10"


class RecordingSink(sysiface.RouteSink):
    """Remembers every call instead of touching the kernel."""

    def __init__(self):
        self.calls = []
        self.fail_install = False
        self.fail_withdraw = False
        # network -> exception raised by install() for that network
        self.install_errors = {}

    def install(self, net, preflen, nexthop):
        self.calls.append(("install", "%s/%d" % (net, preflen), nexthop))
        if net in self.install_errors:
            raise self.install_errors[net]
        if self.fail_install:
            raise sysiface.ModifyRouteError("route_install",
                                            "RTNETLINK answers: Network is "
                                            "unreachable")

    def withdraw(self, net, preflen):
        self.calls.append(("withdraw", "%s/%d" % (net, preflen)))
        if self.fail_withdraw:
            raise sysiface.ModifyRouteError("route_uninstall",
                                            "RTNETLINK answers: Operation "
                                            "not permitted")

    def installs(self):
        return [c for c in self.calls if c[0] == "install"]

    def withdraws(self):
        return [c for c in self.calls if c[0] == "withdraw"]


@pytest.fixture
def clock():
    c = task.Clock()
    c.advance(1000000)
    return c

@pytest.fixture
def sink():
    return RecordingSink()

@pytest.fixture
def table(sink, clock):
    return RouteTable(sink, ttl=TTL, clock=clock.seconds)

@pytest.fixture
def route_validator():
    return validator.RouteValidator(
               local_addresses=validator.LocalAddressSet([LOCAL_GW]))

@pytest.fixture
def processor(table, route_validator, clock):
    return RIP44Processor(table, route_validator, clock=clock.seconds)

@pytest.fixture
def route():
    """Build a route entry from dotted quads."""
    def _route(address, mask, nexthop, tag=0, metric=1,
               afi=ripmsg.RIPRouteEntry.AF_INET):
        return ripmsg.RIPRouteEntry(address=address, mask=mask,
                                    nexthop=nexthop, metric=metric, tag=tag,
                                    afi=afi)
    return _route

@pytest.fixture
def make_packet():
    """Serialize entries behind a header, which may be made invalid on
    purpose."""
    def _make_packet(entries, cmd=ripmsg.RIPHeader.TYPE_RESPONSE, ver=2,
                     reserved=0):
        hdr = ripmsg.RIPHeader(cmd=cmd, ver=ver)
        return ripmsg.RIPPacket(hdr=hdr, rtes=entries).serialize(reserved)
    return _make_packet
