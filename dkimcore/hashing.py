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

from dkimcore.signature import strip_b_tag

__all__ = [
    'body_hash',
    'hash_headers',
    'HashThrough',
    'select_headers',
    ]


class HashThrough(object):
    """Wrap a hash object, optionally keeping the bytes fed to it."""

    def __init__(self, hasher, debug=False):
        self.data = []
        self.hasher = hasher
        self.name = hasher.name
        self.debug = debug

    def update(self, data):
        if self.debug:
            self.data.append(data)
        return self.hasher.update(data)

    def digest(self):
        return self.hasher.digest()

    def hashed(self):
        return b''.join(self.data)


def select_headers(headers, include_headers):
    """Select message header fields to be signed/verified.

    Each name in include_headers takes the next instance of that field not
    yet taken, counting from the bottom of the header block. Names with no
    instance left are skipped.

    >>> h = [(b'from',b'biz'),(b'foo',b'bar'),(b'from',b'baz'),(b'subject',b'boring')]
    >>> i = [b'from',b'subject',b'to',b'from']
    >>> select_headers(h,i)
    [(b'from', b'baz'), (b'subject', b'boring'), (b'from', b'biz')]
    >>> h = [(b'From',b'biz'),(b'Foo',b'bar'),(b'Subject',b'Boring')]
    >>> i = [b'from',b'subject',b'to',b'from']
    >>> select_headers(h,i)
    [(b'From', b'biz'), (b'Subject', b'Boring')]
    """
    positions = {}
    for i, (name, value) in enumerate(headers):
        positions.setdefault(name.lower(), []).append(i)
    taken = {}
    sign_headers = []
    for h in include_headers:
        h = h.lower()
        found = positions.get(h, ())
        n = taken.get(h, 0)
        if n < len(found):
            sign_headers.append(headers[found[len(found) - 1 - n]])
            taken[h] = n + 1
    return sign_headers


def hash_headers(hasher, canon_policy, headers, include_headers, sigheader):
    """Update hash for signed message header fields.

    @param hasher: hash object to update
    @param canon_policy: the L{CanonicalizationPolicy} in use
    @param headers: raw (name, value) fields of the message
    @param include_headers: lower-cased h= names
    @param sigheader: the raw (name, value) DKIM-Signature field
    @return: the selected header fields, canonicalized
    """
    sign_headers = canon_policy.canonicalize_headers(
        select_headers(headers, include_headers))
    cheaders = canon_policy.canonicalize_headers(
        [(sigheader[0], strip_b_tag(sigheader[1]))])
    for x, y in sign_headers:
        hasher.update(x)
        hasher.update(b":")
        hasher.update(y)
    # The signature field is hashed with no trailing CRLF, even if the
    # canonicalization algorithm would add one.
    for x, y in cheaders:
        if y.endswith(b"\r\n"):
            y = y[:-2]
        hasher.update(x)
        hasher.update(b":")
        hasher.update(y)
    return sign_headers


def body_hash(canon_policy, hasher, body, length=None):
    """Compute the body hash.

    @param canon_policy: the L{CanonicalizationPolicy} in use
    @param hasher: hash constructor, e.g. hashlib.sha256
    @param body: raw message body
    @param length: l= value; hash only that many canonical body bytes
    @return: the digest bytes
    """
    body = canon_policy.canonicalize_body(body)
    if length is not None:
        body = body[:length]
    h = hasher()
    h.update(body)
    return h.digest()
