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

__all__ = [
    'DigestTooLargeError',
    'load_private_key',
    'load_public_key',
    'parse_ed25519_private_key',
    'parse_ed25519_public_key',
    'parse_pem_private_key',
    'parse_private_key',
    'parse_public_key',
    'RSAPrivateKey',
    'RSAPublicKey',
    'RSASSA_PKCS1_v1_5_sign',
    'RSASSA_PKCS1_v1_5_verify',
    'sign_digest',
    'UnparsableKeyError',
    'verify_digest',
    ]

import base64
import binascii
import re
from collections import namedtuple

import nacl.exceptions
import nacl.signing

from dkimcore.asn1 import (
    ASN1FormatError,
    asn1_build,
    asn1_parse,
    BIT_STRING,
    INTEGER,
    SEQUENCE,
    OBJECT_IDENTIFIER,
    OCTET_STRING,
    NULL,
    )
from dkimcore.types import SigningAlgorithm


ASN1_Object = [
    (SEQUENCE, [
        (SEQUENCE, [
            (OBJECT_IDENTIFIER,),
            (NULL,),
        ]),
        (BIT_STRING,),
    ])
]

ASN1_RSAPublicKey = [
    (SEQUENCE, [
        (INTEGER,),
        (INTEGER,),
    ])
]

ASN1_RSAPrivateKey = [
    (SEQUENCE, [
        (INTEGER,),
        (INTEGER,),
        (INTEGER,),
        (INTEGER,),
        (INTEGER,),
        (INTEGER,),
        (INTEGER,),
        (INTEGER,),
        (INTEGER,),
    ])
]

# PKCS#8 PrivateKeyInfo wrapping an RSAPrivateKey.
ASN1_PKCS8_RSA = [
    (SEQUENCE, [
        (INTEGER,),
        (SEQUENCE, [
            (OBJECT_IDENTIFIER,),
            (NULL,),
        ]),
        (OCTET_STRING,),
    ])
]

# PKCS#8 and SubjectPublicKeyInfo for Ed25519 (RFC 8410), no parameters.
ASN1_PKCS8_Ed25519 = [
    (SEQUENCE, [
        (INTEGER,),
        (SEQUENCE, [
            (OBJECT_IDENTIFIER,),
        ]),
        (OCTET_STRING,),
    ])
]

ASN1_Ed25519_Object = [
    (SEQUENCE, [
        (SEQUENCE, [
            (OBJECT_IDENTIFIER,),
        ]),
        (BIT_STRING,),
    ])
]

OID_RSA_ENCRYPTION = b"\x2a\x86\x48\x86\xf7\x0d\x01\x01\x01"
OID_ED25519 = b"\x2b\x65\x70"

# These values come from RFC 3447, section 9.2 Notes, page 43.
HASH_ID_MAP = {
    b'sha1': b"\x2b\x0e\x03\x02\x1a",
    b'sha256': b"\x60\x86\x48\x01\x65\x03\x04\x02\x01",
    }

ED25519_KEY_SIZE = 32


RSAPublicKey = namedtuple('RSAPublicKey', ['modulus', 'publicExponent'])

RSAPrivateKey = namedtuple('RSAPrivateKey', [
    'modulus', 'publicExponent', 'privateExponent', 'prime1', 'prime2',
    'exponent1', 'exponent2', 'coefficient'])


class DigestTooLargeError(Exception):
    """The digest is too large to fit within the requested length."""
    pass


class UnparsableKeyError(Exception):
    """The data could not be parsed as a key."""
    pass


def bitsize(x):
    """Return size of long in bits."""
    return x.bit_length()


def parse_public_key(data):
    """Parse an RSA public key.

    @param data: DER-encoded X.509 subjectPublicKeyInfo
        containing an RFC3447 RSAPublicKey, or a bare RSAPublicKey.
    @return: RSA public key
    """
    try:
        x = asn1_parse(ASN1_Object, data)
    except ASN1FormatError:
        x = None
    try:
        if x is not None:
            if x[0][0][0] != OID_RSA_ENCRYPTION:
                raise UnparsableKeyError("Not an RSA public key")
            # Skip the unused-bits byte of the BIT STRING.
            pkd = asn1_parse(ASN1_RSAPublicKey, x[0][1][1:])
        else:
            pkd = asn1_parse(ASN1_RSAPublicKey, data)
    except ASN1FormatError as e:
        raise UnparsableKeyError('Unparsable public key: ' + str(e))
    if pkd[0][0] <= 0 or pkd[0][1] <= 0:
        raise UnparsableKeyError('Invalid RSA public key')
    return RSAPublicKey(modulus=pkd[0][0], publicExponent=pkd[0][1])


def parse_ed25519_public_key(data):
    """Parse an Ed25519 public key.

    @param data: the raw 32 byte key as published per RFC 8463, or an
        RFC 8410 subjectPublicKeyInfo
    @return: a nacl.signing.VerifyKey
    """
    if len(data) != ED25519_KEY_SIZE:
        try:
            x = asn1_parse(ASN1_Ed25519_Object, data)
        except ASN1FormatError as e:
            raise UnparsableKeyError('Unparsable public key: ' + str(e))
        if x[0][0][0] != OID_ED25519:
            raise UnparsableKeyError("Not an Ed25519 public key")
        data = x[0][1][1:]
    try:
        return nacl.signing.VerifyKey(bytes(data))
    except (ValueError, TypeError, nacl.exceptions.CryptoError) as e:
        raise UnparsableKeyError('Invalid Ed25519 public key: %s' % e)


def load_public_key(key_type, data):
    """Decode the p= key material of a key record.

    @param key_type: k= value, b'rsa' or b'ed25519'
    @param data: decoded p= value
    @return: (public key, key size in bits)
    """
    if key_type == b'rsa':
        pk = parse_public_key(data)
        return pk, bitsize(pk.modulus)
    elif key_type == b'ed25519':
        return parse_ed25519_public_key(data), ED25519_KEY_SIZE * 8
    raise UnparsableKeyError("unknown key type: %r" % key_type)


def parse_private_key(data):
    """Parse an RSA private key.

    @param data: DER-encoded RFC3447 RSAPrivateKey.
    @return: RSA private key
    """
    try:
        pka = asn1_parse(ASN1_RSAPrivateKey, data)
    except ASN1FormatError as e:
        raise UnparsableKeyError(str(e))
    return RSAPrivateKey(*pka[0][1:])


def parse_ed25519_private_key(data):
    """Parse an Ed25519 private key.

    @param data: the 32 byte seed, raw or base64 encoded
    @return: a nacl.signing.SigningKey
    """
    if len(data) != ED25519_KEY_SIZE:
        try:
            data = base64.b64decode(re.sub(br"\s+", b"", data), validate=True)
        except (TypeError, binascii.Error) as e:
            raise UnparsableKeyError(str(e))
    if len(data) != ED25519_KEY_SIZE:
        raise UnparsableKeyError("Ed25519 seed must be 32 bytes")
    return nacl.signing.SigningKey(bytes(data))


def parse_pem_private_key(data):
    """Parse a PEM private key.

    Accepts PKCS#1 RSA keys (BEGIN RSA PRIVATE KEY) and PKCS#8 keys
    (BEGIN PRIVATE KEY) holding either an RSA or an Ed25519 key.

    @param data: private key in PEM format.
    @return: RSA private key or nacl.signing.SigningKey
    """
    if isinstance(data, str):
        data = data.encode('ascii')
    m = re.search(
        br"-----BEGIN ([A-Z ]*)PRIVATE KEY-----\r?\n(.*?)\r?\n-----END",
        data, re.DOTALL)
    if m is None:
        raise UnparsableKeyError("Private key not found")
    try:
        pkdata = base64.b64decode(re.sub(br"\s+", b"", m.group(2)))
    except (TypeError, binascii.Error) as e:
        raise UnparsableKeyError(str(e))
    if m.group(1) == b"RSA ":
        return parse_private_key(pkdata)
    if m.group(1) != b"":
        raise UnparsableKeyError(
            "Unsupported private key type: %s" % m.group(1).decode('ascii'))
    try:
        x = asn1_parse(ASN1_PKCS8_RSA, pkdata)
        if x[0][1][0] != OID_RSA_ENCRYPTION:
            raise UnparsableKeyError("Not an RSA private key")
        return parse_private_key(x[0][2])
    except ASN1FormatError:
        pass
    try:
        x = asn1_parse(ASN1_PKCS8_Ed25519, pkdata)
        if x[0][1][0] != OID_ED25519:
            raise UnparsableKeyError("Unsupported private key algorithm")
        seed = asn1_parse([(OCTET_STRING,)], x[0][2])[0]
    except ASN1FormatError as e:
        raise UnparsableKeyError(str(e))
    return parse_ed25519_private_key(seed)


def load_private_key(privkey, algorithm):
    """Turn signer key material into a key object for algorithm.

    @param privkey: an RSAPrivateKey or nacl.signing.SigningKey, a PEM
        private key, or for Ed25519 the seed (raw or base64)
    @param algorithm: the L{SigningAlgorithm} the key will be used with
    @return: RSAPrivateKey or nacl.signing.SigningKey
    """
    if isinstance(privkey, (RSAPrivateKey, nacl.signing.SigningKey)):
        pk = privkey
    else:
        if isinstance(privkey, str):
            privkey = privkey.encode('ascii')
        if b"-----BEGIN" in privkey:
            pk = parse_pem_private_key(privkey)
        elif algorithm.key_family == b'ed25519':
            pk = parse_ed25519_private_key(privkey)
        else:
            raise UnparsableKeyError("Private key not found")
    family = b'rsa' if isinstance(pk, RSAPrivateKey) else b'ed25519'
    if family != algorithm.key_family:
        raise UnparsableKeyError(
            "%s key cannot sign %s" % (family.decode('ascii'),
                                       algorithm.value.decode('ascii')))
    return pk


def EMSA_PKCS1_v1_5_encode(hash, mlen):
    """Encode a digest with RFC3447 EMSA-PKCS1-v1_5.

    @param hash: hash object to encode
    @param mlen: desired message length
    @return: encoded digest byte string
    """
    dinfo = asn1_build(
        (SEQUENCE, [
            (SEQUENCE, [
                (OBJECT_IDENTIFIER, HASH_ID_MAP[hash.name.lower().encode()]),
                (NULL, None),
            ]),
            (OCTET_STRING, hash.digest()),
        ]))
    if len(dinfo) + 11 > mlen:
        raise DigestTooLargeError()
    return b"\x00\x01" + b"\xff" * (mlen - len(dinfo) - 3) + b"\x00" + dinfo


def str2int(s):
    """Convert a byte string to an integer.

    @param s: byte string representing a positive integer to convert
    @return: converted integer
    """
    return int.from_bytes(s, 'big')


def int2str(n, length=-1):
    """Convert an integer to a byte string.

    @param n: positive integer to convert
    @param length: minimum length
    @return: converted bytestring, of at least the minimum length if it was
        specified
    """
    assert n >= 0
    if length < 0:
        length = max(1, (n.bit_length() + 7) // 8)
    return n.to_bytes(length, 'big')


def rsa_sign(message, pk):
    """Perform RSA signing with the CRT parameters of a private key."""
    c = str2int(message)
    m1 = pow(c, pk.exponent1, pk.prime1)
    m2 = pow(c, pk.exponent2, pk.prime2)
    h = (pk.coefficient * (m1 - m2)) % pk.prime1
    return m2 + h * pk.prime2


def RSASSA_PKCS1_v1_5_sign(hash, private_key):
    """Sign a digest with RFC3447 RSASSA-PKCS1-v1_5.

    @param hash: hash object to sign
    @param private_key: private key data
    @return: signed digest byte string
    """
    modlen = len(int2str(private_key.modulus))
    encoded_digest = EMSA_PKCS1_v1_5_encode(hash, modlen)
    return int2str(rsa_sign(encoded_digest, private_key), modlen)


def RSASSA_PKCS1_v1_5_verify(hash, signature, public_key):
    """Verify a digest signed with RFC3447 RSASSA-PKCS1-v1_5.

    @param hash: hash object to check
    @param signature: signed digest byte string
    @param public_key: public key data
    @return: True if the signature is valid, False otherwise
    """
    modlen = len(int2str(public_key.modulus))
    if len(signature) > modlen:
        return False
    s = str2int(signature)
    if s >= public_key.modulus:
        return False
    encoded_digest = EMSA_PKCS1_v1_5_encode(hash, modlen)
    signed_digest = int2str(
        pow(s, public_key.publicExponent, public_key.modulus), modlen)
    return encoded_digest == signed_digest


def sign_digest(algorithm, private_key, hash):
    """Sign a finished header hash.

    This and L{verify_digest} are the only places that dispatch on the
    signing algorithm.

    @param algorithm: a L{SigningAlgorithm}
    @param private_key: key object returned by L{load_private_key}
    @param hash: hash object over the canonicalized headers
    @return: signature byte string
    """
    if algorithm.key_family == b'rsa':
        return RSASSA_PKCS1_v1_5_sign(hash, private_key)
    elif algorithm is SigningAlgorithm.ED25519_SHA256:
        # RFC 8463: Ed25519 signs the SHA-256 digest, not the raw data.
        return private_key.sign(hash.digest()).signature
    raise UnparsableKeyError("unknown signing algorithm: %r" % algorithm)


def verify_digest(algorithm, public_key, hash, signature):
    """Verify a signature over a finished header hash.

    @return: True if the signature is valid, False otherwise
    @raise DigestTooLargeError: the RSA modulus is too small for the digest
    """
    if algorithm.key_family == b'rsa':
        return RSASSA_PKCS1_v1_5_verify(hash, signature, public_key)
    elif algorithm is SigningAlgorithm.ED25519_SHA256:
        try:
            public_key.verify(hash.digest(), signature)
            return True
        except (nacl.exceptions.BadSignatureError, ValueError, TypeError):
            return False
    raise UnparsableKeyError("unknown signing algorithm: %r" % algorithm)
