#!/usr/bin/env python

"""RIPv2 simple password authentication (RFC 1723 section 3.1)."""

# ripauth.py
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

import logging

import util  # registers the debug1..debug5 log levels
from ripmsg import RIP44Error, RIPSimpleAuthEntry, decode_entry

log = logging.getLogger("RIP")


class AuthException(RIP44Error):
    pass


class AuthRequired(AuthException):
    """A password is configured, but the first entry is not an
    authentication entry."""
    pass


class AuthMismatch(AuthException):
    """The authentication entry has an unsupported type or the wrong
    password."""
    pass


def _to_bytes(secret):
    if isinstance(secret, bytes):
        return secret
    return secret.encode("ascii")

def is_auth_entry(entry):
    return entry.afi == RIPSimpleAuthEntry.AFI

def check_auth(entry, secret):
    """Returns True if entry is a simple password entry carrying secret."""
    if not is_auth_entry(entry):
        return False

    if entry.auth_type != RIPSimpleAuthEntry.TYPE_PASSWORD:
        log.debug1("Ignoring unsupported RIP auth type %d." % entry.auth_type)
        return False

    if secret is None:
        log.debug1("RIPv2 packet contains a password but we require none.")
        return False

    return entry.password == _to_bytes(secret)

def require_auth(rawentry, secret):
    """Gate a whole message on its first entry. Raises AuthRequired or
    AuthMismatch if the message must be discarded."""
    entry = decode_entry(rawentry)
    if not is_auth_entry(entry):
        raise(AuthRequired("RIPv2 first entry does not contain auth "
                           "password"))
    if not check_auth(entry, secret):
        raise(AuthMismatch("RIPv2 invalid password or auth type %d" %
                           entry.auth_type))
