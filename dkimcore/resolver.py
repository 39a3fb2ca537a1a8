# This software is provided 'as-is', without any express or implied
# warranty.  In no event will the author be held liable for any damages
# arising from the use of this software.
#
# Permission is granted to anyone to use this software for any purpose,
# including commercial applications, and to alter it and redistribute it
# freely, subject to the following restrictions:
#
# 1. The origin of this software must not be misrepresented; you must not
#    claim that you wrote the original software. If you use this software
#    in a product, an acknowledgment in the product documentation would be
#    appreciated but is not required.
# 2. Altered source versions must be plainly marked as such, and must not be
#    misrepresented as being the original software.
# 3. This notice may not be removed or altered from any source distribution.
#
# Copyright (c) 2008 Greg Hewgill http://hewgill.com
#
# This has been modified from the original software.
# Copyright (c) 2011 William Grant <me@williamgrant.id.au>

import asyncio
import concurrent.futures
import functools
import inspect

from dkimcore.dnsplug import (
    DEFAULT_TIMEOUT,
    DNSFailure,
    DNSNotFound,
    get_txt,
    )
from dkimcore.errors import (
    DnsFailureError,
    KeyRevokedError,
    NoKeyFoundError,
    )
from dkimcore.keyrecord import parse_key_record

__all__ = [
    'DNS_EXECUTOR',
    'KEY_RECORD_SELECTION',
    'key_name',
    'resolve_key',
    'select_key_record',
    ]

#: Index, in response order, of the record used when several TXT records
#: exist at a selector name.
KEY_RECORD_SELECTION = 0

#: Runs DNS capabilities that are plain (blocking) functions. A lookup
#: abandoned on timeout keeps its worker until it returns.
DNS_EXECUTOR = concurrent.futures.ThreadPoolExecutor(
    thread_name_prefix="dkimcore-dns")


def key_name(selector, domain):
    """Return the fully qualified DNS name holding a DKIM key.

    >>> key_name(b'brisbane', b'example.com')
    'brisbane._domainkey.example.com.'
    """
    if isinstance(selector, bytes):
        selector = selector.decode('ascii')
    if isinstance(domain, bytes):
        domain = domain.decode('ascii')
    return selector + "._domainkey." + domain.rstrip('.') + "."


def join_record(record):
    """Concatenate the strings of one TXT record, with no separator."""
    if isinstance(record, str):
        return record.encode('utf-8')
    if isinstance(record, bytes):
        return record
    return b"".join(
        x.encode('utf-8') if isinstance(x, str) else x for x in record)


def select_key_record(records):
    """Pick the record to use among the TXT records returned for a name."""
    return join_record(records[KEY_RECORD_SELECTION])


async def call_dnsfunc(name, dnsfunc):
    if inspect.iscoroutinefunction(dnsfunc):
        return await dnsfunc(name)
    loop = asyncio.get_running_loop()
    s = await loop.run_in_executor(DNS_EXECUTOR, dnsfunc, name)
    if inspect.isawaitable(s):
        s = await s
    return s


async def lookup_txt(name, dnsfunc, timeout):
    """Call a DNS capability, plain function or coroutine function.

    Plain functions run on L{DNS_EXECUTOR} so that a blocking lookup
    neither stalls the event loop nor escapes the timeout.
    """
    return await asyncio.wait_for(call_dnsfunc(name, dnsfunc), timeout)


async def resolve_key(selector, domain, dnsfunc=None, timeout=DEFAULT_TIMEOUT,
                      logger=None):
    """Look up and parse the public key record for selector and domain.

    @param dnsfunc: DNS capability, see L{dkimcore.dnsplug}
    @param timeout: seconds allowed for the lookup
    @return: (DNS name, L{PublicKeyRecord})
    @raise NoKeyFoundError: no record at the name
    @raise DnsFailureError: the lookup failed or timed out; may be retried
    @raise KeyMalformedError: the record cannot be parsed
    @raise KeyRevokedError: the record has an empty p=
    """
    if dnsfunc is None:
        dnsfunc = functools.partial(get_txt, timeout=timeout)
    name = key_name(selector, domain)
    try:
        records = await lookup_txt(name, dnsfunc, timeout)
    except DNSNotFound as e:
        raise NoKeyFoundError("missing public key: %s" % name) from e
    except DNSFailure as e:
        raise DnsFailureError("DNS lookup failed for %s: %s" % (name, e)) from e
    except asyncio.TimeoutError as e:
        raise DnsFailureError("DNS lookup timed out for %s" % name) from e

    if not records:
        raise NoKeyFoundError("missing public key: %s" % name)
    if isinstance(records, (bytes, str)):
        records = [records]
    if len(records) > 1 and logger is not None:
        logger.debug("%d TXT records at %s, using record %d" %
                     (len(records), name, KEY_RECORD_SELECTION))
    record = parse_key_record(select_key_record(records))
    if record.revoked:
        raise KeyRevokedError("public key revoked: %s" % name)
    return name, record
