#!/usr/bin/env python

import inspect
import logging
import pprint
from cmd import Cmd
from twisted.internet import protocol, reactor
from twisted.protocols.basic import LineReceiver


class _TransportWriter(object):
    """File-like wrapper so that Cmd can write text to a transport."""

    def __init__(self, transport):
        self.transport = transport

    def write(self, data):
        self.transport.write(data.encode("utf-8"))

    def flush(self):
        pass


class RIPAdminProtocol(LineReceiver):
    """Network accessible administrative interface for the RIPAdminCLI."""

    delimiter = b"\n"

    def __init__(self, processor, prompt):
        self.processor = processor
        self.prompt = prompt

    def connectionMade(self):
        out = _TransportWriter(self.transport)
        self.cli = RIPAdminCLI(self.processor, self.prompt, stdout=out)

        # Using raw_input seems to cause some screwiness.
        self.cli.use_rawinput = False
        out.write("Connected to the rip44d administrative interface.\n"
                  "  Type ? for a list of commands.\n"
                  "  Type help <COMMAND> for command info.\n"
                  "  Type 'exit' to exit.\n")
        out.write(self.cli.prompt)

    def lineReceived(self, line):
        line = line.decode("utf-8", "replace").strip()
        try:
            self.cli.onecmd(line)
            self.cli.stdout.write(self.cli.prompt)
        except RIPAdminExit:
            self.cli.stdout.write("Disconnecting by operator command.\n")
            self.transport.loseConnection()


class RIPAdminCLI(Cmd):
    """Administrative interface for rip44d."""

    def __init__(self, processor, prompt, *args, **kwargs):
        Cmd.__init__(self, *args, **kwargs)
        self.processor = processor
        self.prompt = prompt
        self.my_handlers = {}
        # logger levels to put back when a handler is removed
        self.saved_levels = {}

    def do_EOF(self, line):
        """Exit the CLI."""
        raise RIPAdminExit

    def do_show_routes(self, line):
        """Show routes learned from RIP."""
        table = self.processor.table
        now = table.now()
        self.sendline("%d routes:" % len(table))
        for key, state in table:
            self.sendline("%-20s via %-15s tag %-5d age %ds" %
                          (key, state.nexthop, state.tag,
                           now - state.last_refresh))

    def do_expire(self, line):
        """Check for expired routes now."""
        expired = self.processor.table.expire_routes()
        self.sendline("%d routes expired." % len(expired))

    def do_debug(self, line):
        """Subscribe to log messages from a subsystem.
        Usage: debug <SUBSYSTEM> <LEVEL>
        SUBSYSTEM can be: RIP, SYSTEM
        LEVEL can be: OFF, CRITICAL, ERROR, WARNING, INFO, DEBUG,
        DEBUG1 .. DEBUG5"""
        args = line.split()
        if len(args) != 2:
            self.usage()
            return
        subsystem = args[0].upper()
        level = args[1].upper()

        if level not in [ "OFF",
                          "CRITICAL",
                          "ERROR",
                          "WARNING",
                          "INFO",
                          "DEBUG",
                          "DEBUG1", "DEBUG2", "DEBUG3", "DEBUG4", "DEBUG5" ]:
            self.stdout.write("Bad logging level.\n")
            self.usage()
            return

        loggers = { "RIP": "RIP", "SYSTEM": "System" }
        if subsystem not in loggers:
            self.stdout.write("Bad subsystem name.\n")
            self.usage()
            return

        handler_name = subsystem
        self.stdout.write("Setting %s to level %s.\n" % (subsystem, level))

        if level == "OFF":
            self.delete_handler(handler_name, loggers[subsystem])
            return

        # If the handler already exists, set the new requested level. Other-
        # wise create a new handler.
        logger = logging.getLogger(loggers[subsystem])
        try:
            handler = self.my_handlers[handler_name]
            handler.setLevel(level)
        except KeyError:
            handler = logging.StreamHandler(self.stdout)
            handler.setLevel(level)
            formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            handler.setFormatter(formatter)
            self.my_handlers[handler_name] = handler
            logger.addHandler(handler)
        if logger.getEffectiveLevel() > handler.level:
            self.saved_levels.setdefault(handler_name, logger.level)
            logger.setLevel(level)

    def delete_handler(self, subsystem, logger_name):
        if subsystem not in self.my_handlers:
            return
        log = logging.getLogger(logger_name)
        log.removeHandler(self.my_handlers[subsystem])
        del self.my_handlers[subsystem]
        if subsystem in self.saved_levels:
            log.setLevel(self.saved_levels.pop(subsystem))

    def do_show_handlers(self, line):
        """Show debug handlers."""
        self.stdout.write(pprint.pformat(self.my_handlers) + "\n")

    def usage(self):
        self.stdout.write("Error parsing command. Usage:\n")
        try:
            # Prints the docstring of the caller, which (for 'do_' functions)
            # is a usage string used by the Cmd class for the 'help' command.
            self.stdout.write(inspect.getdoc(getattr(self,
                              (inspect.stack()[1][3]))) + "\n")
        except AttributeError:
            self.stdout.write("No usage available.\n")

    def sendline(self, line):
        self.stdout.write(str(line) + "\n")

    def emptyline(self):
        pass

    # Command aliases
    do_quit = do_EOF
    do_exit = do_EOF


class RIPAdminExit(Exception):
    """Notification that the CLI should exit."""
    pass


class RIPAdminProtocolFactory(protocol.ServerFactory):
    def __init__(self, processor, prompt):
        self.processor = processor
        self.prompt = prompt

    def buildProtocol(self, addr):
        return RIPAdminProtocol(self.processor, self.prompt)


def start(processor, prompt="rip44d> ", port=5120):
    """The console runs as root without authentication, so it only listens
    on localhost."""
    return reactor.listenTCP(port, RIPAdminProtocolFactory(processor, prompt),
                             interface="127.0.0.1")
