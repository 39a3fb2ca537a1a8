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

import base64
import binascii
import re
from collections import namedtuple
from types import MappingProxyType

from dkimcore.crypto import (
    load_public_key,
    UnparsableKeyError,
    )
from dkimcore.errors import KeyMalformedError
from dkimcore.util import (
    InvalidTagValueList,
    parse_tag_value,
    )

__all__ = [
    'KNOWN_KEY_TYPES',
    'parse_key_record',
    'PublicKeyRecord',
    ]

KNOWN_KEY_TYPES = (b'rsa', b'ed25519')


def split_list(value):
    """Split a colon separated key record list, lower-cased."""
    return tuple(x.lower() for x in re.split(br"\s*:\s*", value.strip()) if x)


class PublicKeyRecord(namedtuple('PublicKeyRecord', [
        'version', 'key_type', 'hash_algorithms', 'service_types', 'flags',
        'public_key', 'key', 'keysize', 'tags'])):
    """Parsed form of a DKIM public key TXT record (RFC 6376 3.6.1).

    public_key holds the decoded p= bytes, empty when the key is revoked.
    key is the decoded key object when k= names a known key type, and
    keysize its size in bits. hash_algorithms is None when h= is absent.
    """

    __slots__ = ()

    @property
    def revoked(self):
        return not self.public_key

    @property
    def testing(self):
        return b'y' in self.flags

    @property
    def strict(self):
        return b's' in self.flags

    def allows_hash(self, hash_name):
        return self.hash_algorithms is None or hash_name in self.hash_algorithms

    def allows_email(self):
        return b'*' in self.service_types or b'email' in self.service_types


def parse_key_record(txt):
    """Parse a public key record.

    @param txt: the record, TXT strings already concatenated
    @return: a L{PublicKeyRecord}; an empty p= gives a revoked record
    @raise KeyMalformedError: the record cannot be used at all
    """
    if isinstance(txt, str):
        txt = txt.encode('ascii', 'replace')
    try:
        pub = parse_tag_value(txt)
    except InvalidTagValueList as e:
        raise KeyMalformedError("invalid key record: %s" % e) from e

    version = pub.get(b'v')
    if version is not None and version != b'DKIM1':
        raise KeyMalformedError("v= value is not DKIM1 (%r)" % version)
    if b'p' not in pub:
        raise KeyMalformedError("incomplete public key: %r" % txt)

    key_type = pub.get(b'k', b'rsa').lower()
    hash_algorithms = split_list(pub[b'h']) if b'h' in pub else None
    service_types = split_list(pub.get(b's', b'*'))
    flags = split_list(pub.get(b't', b''))

    p = re.sub(br"\s+", b"", pub[b'p'])
    try:
        public_key = base64.b64decode(p, validate=True)
    except (TypeError, binascii.Error) as e:
        raise KeyMalformedError(
            "could not decode public key (%r): %s" % (p, e)) from e

    key, keysize = None, 0
    if public_key and key_type in KNOWN_KEY_TYPES:
        try:
            key, keysize = load_public_key(key_type, public_key)
        except UnparsableKeyError as e:
            raise KeyMalformedError(
                "could not parse public key (%r): %s" % (p, e)) from e

    return PublicKeyRecord(
        version=version,
        key_type=key_type,
        hash_algorithms=hash_algorithms,
        service_types=service_types,
        flags=flags,
        public_key=public_key,
        key=key,
        keysize=keysize,
        tags=MappingProxyType(pub),
        )
