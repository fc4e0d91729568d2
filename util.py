#!/usr/bin/env python

import logging
import os
import sys
from twisted.internet import error

# debug1 is less verbose, debug5 is more verbose.
DEBUG_LEVELS = [ (10, "DEBUG1"),
                 (9,  "DEBUG2"),
                 (8,  "DEBUG3"),
                 (7,  "DEBUG4"),
                 (6,  "DEBUG5"),
               ]

def create_new_log_level(level, name):
    """Add a custom log level. See my comment here:
    http://stackoverflow.com/questions/2183233/how-to-add-a-custom-loglevel-to-pythons-logging-facility
    """
    def newlog(self, msg, *args, **kwargs):
        if self.isEnabledFor(level):
            self._log(level, msg, args, **kwargs)
    logging.addLevelName(level, name)
    setattr(logging.Logger, name.lower(), newlog)

def init_debug_levels():
    for (level, name) in DEBUG_LEVELS:
        create_new_log_level(level, name)

def is_admin():
    """Check for root privs, which are needed to modify the routing table."""
    try:
        return os.geteuid() == 0
    except AttributeError:
        sys.stderr.write("Unable to check if you are running as a \n"
                         "privileged user. You may be using an \n"
                         "unsupported OS.\n")
        return False

def suppress_reactor_not_running(msg, logfunc=None):
    # reactor apparently calls reactor.stop() more than once when shutting
    # down under certain circumstances, like when a signal goes uncaught
    # (e.g. CTRL+C). It prints a stacktrace to the console. Since we never
    # call reactor.stop ourselves, drop those messages here.
    if "isError" not in msg or \
       "failure" not in msg:
        return
    if msg["isError"] and \
       msg["failure"].type == error.ReactorNotRunning:
        if logfunc:
            logfunc("Suppressing ReactorNotRunning error.")
        for k in msg:
            msg[k] = None

init_debug_levels()
