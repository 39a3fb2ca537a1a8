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

"""DNS TXT lookup capabilities.

A capability is a callable taking a DNS name (str) and returning a list of
TXT records, each record either a byte string or a sequence of the byte
strings it was split into. It raises L{DNSNotFound} when the name
authoritatively has no TXT record and L{DNSFailure} for anything that may
succeed on retry.
"""

import aiodns
import aiodns.error
import dns.asyncresolver
import dns.exception
import dns.resolver

__all__ = [
    'DEFAULT_TIMEOUT',
    'DNSFailure',
    'DNSNotFound',
    'get_txt',
    'get_txt_aiodns',
    'get_txt_dnspython',
    ]

#: Seconds allowed for one key lookup.
DEFAULT_TIMEOUT = 5


class DNSLookupError(Exception):
    pass


class DNSNotFound(DNSLookupError):
    """NXDOMAIN or no TXT data at the name."""
    pass


class DNSFailure(DNSLookupError):
    """Timeout, SERVFAIL, refused or another transient failure."""
    pass


async def get_txt_dnspython(name, timeout=DEFAULT_TIMEOUT):
    """Return the TXT records at name using dnspython's asyncio resolver."""
    resolver = dns.asyncresolver.Resolver()
    resolver.lifetime = timeout
    try:
        answer = await resolver.resolve(name, 'TXT', search=False)
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer) as e:
        raise DNSNotFound(str(e)) from e
    except dns.exception.DNSException as e:
        raise DNSFailure(str(e)) from e
    return [tuple(rdata.strings) for rdata in answer]


# c-ares codes meaning the name has no TXT data.
ARES_NOT_FOUND = (aiodns.error.ARES_ENOTFOUND, aiodns.error.ARES_ENODATA)


async def get_txt_aiodns(name, timeout=DEFAULT_TIMEOUT):
    """Return the TXT records at name using aiodns (c-ares)."""
    resolver = aiodns.DNSResolver(timeout=timeout)
    try:
        result = await resolver.query(name.rstrip('.'), 'TXT')
    except aiodns.error.DNSError as e:
        if e.args and e.args[0] in ARES_NOT_FOUND:
            raise DNSNotFound(str(e)) from e
        raise DNSFailure(str(e)) from e
    records = []
    for r in result:
        text = r.text
        if isinstance(text, str):
            text = text.encode('utf-8')
        records.append(text)
    return records


get_txt = get_txt_dnspython
