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

from dkimcore.canonicalization import (
    CanonicalizationPolicy,
    InvalidCanonicalizationPolicyError,
    )
from dkimcore.errors import HeaderParseError
from dkimcore.types import SigningAlgorithm
from dkimcore.util import (
    InvalidTagValueList,
    parse_tag_value,
    )

__all__ = [
    'fold',
    'parse_signature',
    'RE_BTAG',
    'SignatureRecord',
    'strip_b_tag',
    'validate_signature_fields',
    ]

#: Tags every DKIM-Signature must carry.
REQUIRED_TAGS = (b'v', b'a', b'b', b'bh', b'd', b'h', b's')

#: Tags whose values never hold whitespace. Folding inside them is removed
#: before validation.
WSP_STRIPPED_TAGS = (b'v', b'a', b'b', b'bh', b'c', b'd', b's', b'i', b't',
                     b'x', b'l', b'z')

#: Order in which a signer emits tags. b= must stay last.
TAG_ORDER = (b'v', b'a', b'c', b'd', b'i', b'l', b'q', b's', b't', b'x',
             b'h', b'z', b'bh', b'b')

# FWS  =  ([*WSP CRLF] 1*WSP) /  obs-FWS ; Folding white space  [RFC5322]
FWS = br'(?:(?:\s*\r?\n)?\s+)?'
RE_BTAG = re.compile(
    br'((?:\A|[;\s])b' + FWS + br'=)(?:' + FWS + br'[a-zA-Z0-9+/=])*(?:\r?\n\Z)?')

RE_BASE64 = re.compile(br'[0-9A-Za-z+/]*={0,2}')


def strip_b_tag(value):
    """Empty the b= value of a signature header field value.

    Everything else, including the b= tag itself and surrounding
    whitespace, is kept byte for byte. A trailing CRLF following the b=
    value is dropped.

    >>> strip_b_tag(b' a=rsa-sha256; b=dGVz\\r\\n dA==; bh=x')
    b' a=rsa-sha256; b=; bh=x'
    """
    return RE_BTAG.sub(b'\\1', value)


def fold(header):
    """Fold a header line into multiple crlf-separated lines at column 72.

    Only the text after the last existing fold is refolded.

    >>> fold(b'foo')
    b'foo'
    >>> fold(b'foo  '+b'foo'*24).splitlines()[0]
    b'foo  '
    >>> fold(b'foo'*25).splitlines()[-1]
    b' foo'
    >>> len(fold(b'foo'*25).splitlines()[0])
    72
    """
    i = header.rfind(b"\r\n ")
    if i == -1:
        pre = b""
    else:
        i += 3
        pre = header[:i]
        header = header[i:]
    while len(header) > 72:
        i = header[:72].rfind(b" ")
        if i == -1:
            j = 72
        else:
            j = i + 1
        pre += header[:j] + b"\r\n "
        header = header[j:]
    return pre + header


def qp_encode(value):
    """Encode a header value in DKIM-Quoted-Printable for z=."""
    r = []
    for c in bytearray(value):
        if (0x21 <= c <= 0x3a or c == 0x3c or 0x3e <= c <= 0x7e) \
                and c != 0x7c:
            r.append(bytes([c]))
        else:
            r.append(b"=%02X" % c)
    return b"".join(r)


def qp_decode(value):
    """Decode DKIM-Quoted-Printable."""
    return re.sub(
        br"=([0-9A-Fa-f]{2})", lambda m: bytes([int(m.group(1), 16)]), value)


def encode_copied_headers(headers):
    """Build a z= value from (name, value) pairs."""
    return b"|".join(
        name + b":" + qp_encode(value.rstrip(b"\r\n")) for name, value in headers)


def decode_copied_headers(z):
    """Split a z= value into (name, value) pairs."""
    r = []
    for field in z.split(b"|"):
        name, sep, value = field.partition(b":")
        if not sep or not name:
            raise HeaderParseError("z= value is not valid: %r" % field)
        r.append((name, qp_decode(value)))
    return tuple(r)


def decode_base64(tag, value):
    if RE_BASE64.fullmatch(value) is None:
        raise HeaderParseError(
            "%s= value is not valid base64 (%r)" % (tag.decode(), value))
    try:
        return base64.b64decode(value, validate=True)
    except (TypeError, binascii.Error) as e:
        raise HeaderParseError(
            "%s= value is not valid base64 (%r): %s" % (tag.decode(), value, e))


class SignatureRecord(namedtuple('SignatureRecord', [
        'version', 'algorithm', 'canonicalization', 'domain', 'selector',
        'signed_headers', 'body_hash', 'signature', 'length', 'identity',
        'timestamp', 'expiration', 'copied_headers', 'query', 'tags'])):
    """Parsed form of a DKIM-Signature header field.

    body_hash and signature hold the base64 text with whitespace removed.
    signed_headers holds the lower-cased h= names in order. tags keeps
    every tag as found, unknown tags included.
    """

    __slots__ = ()

    @property
    def body_hash_bytes(self):
        return base64.b64decode(self.body_hash)

    @property
    def signature_bytes(self):
        return base64.b64decode(self.signature)

    def tag_list(self):
        """Return (tag, value) pairs in the order a signer emits them."""
        values = {
            b'v': self.version,
            b'a': self.algorithm.value,
            b'c': self.canonicalization.to_c_value(),
            b'd': self.domain,
            b'i': self.identity,
            b'l': None if self.length is None else str(self.length).encode(),
            b'q': self.query,
            b's': self.selector,
            b't': None if self.timestamp is None
                else str(self.timestamp).encode(),
            b'x': None if self.expiration is None
                else str(self.expiration).encode(),
            b'h': b" : ".join(self.signed_headers),
            b'z': None if self.copied_headers is None
                else encode_copied_headers(self.copied_headers),
            b'bh': self.body_hash,
            b'b': self.signature,
        }
        return [(tag, values[tag]) for tag in TAG_ORDER
                if values[tag] is not None]

    def to_header_value(self):
        """Serialize as a folded header field value (without the name)."""
        return fold(b"; ".join(b"=".join(x) for x in self.tag_list()))


def validate_signature_fields(sig, allow_empty_b=False):
    """Validate DKIM-Signature fields.

    Basic checks for presence and correct formatting of mandatory fields.
    Raises a HeaderParseError if checks fail, otherwise returns None.

    @param sig: A dict mapping field keys to values.
    """
    for field in REQUIRED_TAGS:
        if field not in sig:
            raise HeaderParseError("signature missing %s=" % field.decode())
        if not sig[field] and not (field == b'b' and allow_empty_b):
            raise HeaderParseError("signature has empty %s=" % field.decode())
    if sig[b'v'] != b"1":
        raise HeaderParseError("v= value is not 1 (%r)" % sig[b'v'])
    for field in (b'd', b's'):
        try:
            sig[field].decode('ascii')
        except UnicodeDecodeError:
            raise HeaderParseError(
                "%s= value is not ASCII (%r)" % (field.decode(), sig[field]))
    if b'i' in sig and (
            b'@' not in sig[b'i'] or
            not sig[b'i'].lower().endswith(sig[b'd'].lower()) or
            sig[b'i'][-len(sig[b'd'])-1:-len(sig[b'd'])] not in (b'@', b'.')):
        raise HeaderParseError(
            "i= domain is not a subdomain of d= (i=%r d=%r)" %
            (sig[b'i'], sig[b'd']))
    if b'l' in sig and re.match(br"\d{1,76}$", sig[b'l']) is None:
        raise HeaderParseError(
            "l= value is not a decimal integer (%r)" % sig[b'l'])
    if b'q' in sig and sig[b'q'] != b"dns/txt":
        raise HeaderParseError("q= value is not dns/txt (%r)" % sig[b'q'])
    t_sign = None
    if b't' in sig:
        if re.match(br"\d+$", sig[b't']) is None:
            raise HeaderParseError(
                "t= value is not a decimal integer (%r)" % sig[b't'])
        t_sign = int(sig[b't'])
    if b'x' in sig:
        if re.match(br"\d+$", sig[b'x']) is None:
            raise HeaderParseError(
                "x= value is not a decimal integer (%r)" % sig[b'x'])
        if t_sign is not None and int(sig[b'x']) <= t_sign:
            raise HeaderParseError(
                "x= value is not greater than t= value (x=%r t=%r)" %
                (sig[b'x'], sig[b't']))


def parse_signature(value, allow_empty_b=False):
    """Parse and validate a DKIM-Signature header field value.

    @param value: the field value, possibly folded
    @param allow_empty_b: accept an empty b= (a signature being built)
    @return: a L{SignatureRecord}
    @raise HeaderParseError: the value is not a valid DKIM signature
    """
    try:
        sig = parse_tag_value(value)
    except InvalidTagValueList as e:
        raise HeaderParseError("invalid tag list: %s" % e) from e
    for tag in WSP_STRIPPED_TAGS:
        if tag in sig:
            sig[tag] = re.sub(br"\s+", b"", sig[tag])

    validate_signature_fields(sig, allow_empty_b)

    try:
        algorithm = SigningAlgorithm.from_a_value(sig[b'a'])
    except ValueError as e:
        raise HeaderParseError(str(e)) from e
    try:
        canonicalization = CanonicalizationPolicy.from_c_value(sig.get(b'c'))
    except InvalidCanonicalizationPolicyError as e:
        raise HeaderParseError("invalid c= value: %r" % e.args[0]) from e

    decode_base64(b'bh', sig[b'bh'])
    if sig[b'b']:
        decode_base64(b'b', sig[b'b'])

    signed_headers = tuple(
        x.lower() for x in re.split(br"\s*:\s*", sig[b'h']) if x)
    if not signed_headers:
        raise HeaderParseError("h= value is empty")
    if b'from' not in signed_headers:
        raise HeaderParseError("h= does not include the From header field")

    copied_headers = None
    if b'z' in sig:
        copied_headers = decode_copied_headers(sig[b'z'])

    return SignatureRecord(
        version=sig[b'v'],
        algorithm=algorithm,
        canonicalization=canonicalization,
        domain=sig[b'd'],
        selector=sig[b's'],
        signed_headers=signed_headers,
        body_hash=sig[b'bh'],
        signature=sig[b'b'],
        length=int(sig[b'l']) if b'l' in sig else None,
        identity=sig.get(b'i', b'@' + sig[b'd']),
        timestamp=int(sig[b't']) if b't' in sig else None,
        expiration=int(sig[b'x']) if b'x' in sig else None,
        copied_headers=copied_headers,
        query=sig.get(b'q'),
        tags=MappingProxyType(sig),
        )
