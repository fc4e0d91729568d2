import logging

import pytest
from twisted.internet.testing import StringTransport

import ripadmin


@pytest.fixture
def console(processor):
    proto = ripadmin.RIPAdminProtocolFactory(processor, "rip44d> ") \
                    .buildProtocol(("127.0.0.1", 40000))
    transport = StringTransport()
    proto.makeConnection(transport)
    transport.clear()
    yield proto, transport
    for name in ("RIP", "System"):
        logger = logging.getLogger(name)
        for handler in proto.cli.my_handlers.values():
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)


def send(console, line):
    proto, transport = console
    transport.clear()
    proto.dataReceived(line.encode("ascii") + b"\r\n")
    return transport.value().decode("utf-8")


def test_greeting(processor):
    proto = ripadmin.RIPAdminProtocol(processor, "rip44d> ")
    transport = StringTransport()
    proto.makeConnection(transport)
    assert transport.value().endswith(b"rip44d> ")

def test_show_routes(console, processor, clock):
    processor.table.consider("44.1.0.0", 16, "203.0.113.1", 7)
    clock.advance(42)

    out = send(console, "show_routes")
    assert "1 routes:" in out
    assert "44.1.0.0/16" in out
    assert "203.0.113.1" in out
    assert "age 42s" in out
    assert out.endswith("rip44d> ")

def test_expire(console, processor, clock):
    processor.table.consider("44.1.0.0", 16, "203.0.113.1", 0)
    clock.advance(processor.table.ttl + 1)

    assert "1 routes expired." in send(console, "expire")
    assert len(processor.table) == 0

def test_debug_bad_level(console):
    out = send(console, "debug RIP LOUD")
    assert "Bad logging level." in out
    assert "Usage: debug" in out

def test_debug_bad_subsystem(console):
    assert "Bad subsystem name." in send(console, "debug BGP INFO")

def test_debug_attaches_and_removes_handler(console):
    proto, transport = console
    assert "Setting RIP to level DEBUG2." in send(console, "debug rip debug2")
    assert "RIP" in proto.cli.my_handlers

    logging.getLogger("RIP").debug2("hello from the daemon")
    assert "hello from the daemon" in transport.value().decode("utf-8")

    send(console, "debug rip off")
    assert proto.cli.my_handlers == {}

def test_debug_off_restores_logger_level(console):
    logger = logging.getLogger("RIP")
    logger.setLevel(logging.INFO)

    send(console, "debug RIP DEBUG")
    assert logger.level == logging.DEBUG
    send(console, "debug RIP DEBUG5")
    assert logger.level == 6

    send(console, "debug RIP OFF")
    assert logger.level == logging.INFO
    assert console[0].cli.my_handlers == {}

def test_exit(console):
    proto, transport = console
    assert "Disconnecting" in send(console, "exit")
    assert transport.disconnecting
