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

import hashlib
from collections import namedtuple
from enum import Enum

__all__ = [
    'SigningAlgorithm',
    'SignatureResult',
    'Status',
    ]


class SigningAlgorithm(Enum):
    """The closed set of DKIM signing algorithms (RFC 6376, RFC 8463).

    Each member carries its key family and digest, the value is the
    a= tag text.
    """

    RSA_SHA1 = b'rsa-sha1'
    RSA_SHA256 = b'rsa-sha256'
    ED25519_SHA256 = b'ed25519-sha256'

    @property
    def key_family(self):
        return self.value.split(b'-', 1)[0]

    @property
    def hash_name(self):
        return self.value.split(b'-', 1)[1]

    @property
    def hasher(self):
        return getattr(hashlib, self.hash_name.decode('ascii'))

    @property
    def can_sign(self):
        # sha1 is kept for verifying legacy signatures only.
        return self.hash_name != b'sha1'

    @classmethod
    def from_a_value(cls, a):
        try:
            return cls(a.lower())
        except ValueError:
            raise ValueError("unknown signature algorithm: %r" % (a,))


class Status(Enum):
    """Outcome of verifying one DKIM-Signature header."""

    PASS = 'pass'
    PARSE_ERROR = 'parse-error'
    NO_KEY = 'no-key'
    DNS_FAILURE = 'dns-failure'
    KEY_MALFORMED = 'key-malformed'
    KEY_REVOKED = 'key-revoked'
    KEY_UNUSABLE = 'key-unusable'
    ALGORITHM_MISMATCH = 'algorithm-mismatch'
    EXPIRED = 'expired'
    BODY_HASH_MISMATCH = 'body-hash-mismatch'
    SIGNATURE_INVALID = 'signature-invalid'

    @property
    def retryable(self):
        return self is Status.DNS_FAILURE


class SignatureResult(namedtuple('SignatureResult', [
        'index', 'status', 'domain', 'selector', 'signature', 'keysize',
        'testing', 'error'])):
    """Verification result for a single DKIM-Signature header.

    @ivar index: position of the header among the message's signatures
    @ivar status: a L{Status}
    @ivar signature: the parsed L{SignatureRecord}, or None if parsing failed
    @ivar keysize: public key size in bits, 0 if no key was loaded
    @ivar testing: True if the key record carries the t=y flag
    @ivar error: the exception that ended verification, None on success
    """

    __slots__ = ()

    @property
    def passed(self):
        return self.status is Status.PASS

    def __str__(self):
        name = "%s._domainkey.%s" % (_text(self.selector), _text(self.domain))
        if self.error is None:
            return "%s: %s" % (name, self.status.value)
        return "%s: %s (%s)" % (name, self.status.value, self.error)


def _text(s):
    if s is None:
        return '?'
    if isinstance(s, bytes):
        return s.decode('ascii', 'replace')
    return s
