import subprocess
from unittest import mock

import pytest

import sysiface

IP_ADDR_OUTPUT = """\
1: lo    inet 127.0.0.1/8 scope host lo\\       valid_lft forever preferred_lft forever
2: eth0    inet 192.0.2.10/24 brd 192.0.2.255 scope global eth0\\       valid_lft forever preferred_lft forever
4: tunl0@NONE    inet 44.130.1.1/32 scope global tunl0\\       valid_lft forever preferred_lft forever
4: tunl0@NONE    inet 44.130.1.2/32 scope global secondary tunl0\\       valid_lft forever preferred_lft forever
"""


@pytest.fixture
def check_output():
    with mock.patch.object(sysiface.subprocess, "check_output") as m:
        m.return_value = ""
        yield m


def ran(check_output):
    return [c[0][0] for c in check_output.call_args_list]


def test_install(check_output):
    sink = sysiface.LinuxRouteSink("tunl0")
    sink.install("44.1.0.0", 16, "203.0.113.1")

    assert ran(check_output) == [
        ["/sbin/ip", "route", "add", "44.1.0.0/16", "via", "203.0.113.1",
         "dev", "tunl0", "window", "840", "onlink"]]
    assert check_output.call_args[1]["env"]["LANG"] == "C"

def test_install_into_table(check_output):
    sink = sysiface.LinuxRouteSink("ampr0", table="44")
    sink.install("44.1.0.0", 16, "203.0.113.1")
    sink.withdraw("44.1.0.0", 16)

    assert ran(check_output) == [
        ["/sbin/ip", "route", "add", "44.1.0.0/16", "via", "203.0.113.1",
         "dev", "ampr0", "window", "840", "onlink", "table", "44"],
        ["/sbin/ip", "route", "del", "44.1.0.0/16", "table", "44"]]

def test_install_failure(check_output):
    check_output.side_effect = subprocess.CalledProcessError(
        2, "ip", output="RTNETLINK answers: File exists\n")
    sink = sysiface.LinuxRouteSink()

    with pytest.raises(sysiface.ModifyRouteError) as exc:
        sink.install("44.1.0.0", 16, "203.0.113.1")
    assert exc.value.operation == "route_install"
    assert "File exists" in str(exc.value)

def test_withdraw_missing_route_is_not_an_error(check_output):
    check_output.side_effect = subprocess.CalledProcessError(
        2, "ip", output="RTNETLINK answers: No such process\n")
    sysiface.LinuxRouteSink().withdraw("44.1.0.0", 16)

def test_withdraw_failure(check_output):
    check_output.side_effect = subprocess.CalledProcessError(
        2, "ip", output="RTNETLINK answers: Operation not permitted\n")
    with pytest.raises(sysiface.ModifyRouteError):
        sysiface.LinuxRouteSink().withdraw("44.1.0.0", 16)

def test_missing_ip_binary(check_output):
    check_output.side_effect = OSError(2, "No such file or directory")
    with pytest.raises(sysiface.ModifyRouteError):
        sysiface.LinuxRouteSink().install("44.1.0.0", 16, "203.0.113.1")

def test_setup(check_output):
    sysiface.LinuxRouteSink("tunl0").setup("44.0.0.1")

    assert ran(check_output) == [
        ["/sbin/ip", "link", "set", "dev", "tunl0", "multicast", "on"],
        ["/sbin/ip", "route", "add", "44.0.0.1/32", "dev", "tunl0"]]

def test_setup_tolerates_existing_gateway_route(check_output):
    check_output.side_effect = [
        "",
        subprocess.CalledProcessError(2, "ip",
                                      output="RTNETLINK answers: File "
                                             "exists\n")]
    sysiface.LinuxRouteSink("tunl0").setup("44.0.0.1")

def test_setup_fails_without_multicast(check_output):
    check_output.side_effect = subprocess.CalledProcessError(
        1, "ip", output="Cannot find device \"tunl0\"\n")
    with pytest.raises(sysiface.ModifyRouteError):
        sysiface.LinuxRouteSink("tunl0").setup("44.0.0.1")

def test_update_interface_info(check_output):
    check_output.return_value = IP_ADDR_OUTPUT
    sink = sysiface.LinuxRouteSink("tunl0")
    sink.update_interface_info()

    assert [i.name for i in sink.phy_ifaces] == ["lo", "eth0", "tunl0"]
    assert sink.local_addresses() == ["127.0.0.1", "192.0.2.10",
                                      "44.130.1.1", "44.130.1.2"]
    assert sink.interface_address("tunl0") == "44.130.1.1"
    assert sink.interface_address("eth1") is None

def test_route_sink_is_abstract():
    sink = sysiface.RouteSink()
    with pytest.raises(NotImplementedError):
        sink.install("44.1.0.0", 16, "203.0.113.1")
    with pytest.raises(NotImplementedError):
        sink.withdraw("44.1.0.0", 16)
