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
import base64
import time

from dkimcore.canonicalization import (
    CanonicalizationPolicy,
    InvalidCanonicalizationPolicyError,
    )
from dkimcore.crypto import (
    DigestTooLargeError,
    load_private_key,
    sign_digest,
    UnparsableKeyError,
    verify_digest,
    )
from dkimcore.dnsplug import DEFAULT_TIMEOUT
from dkimcore.errors import (
    AlgorithmMismatchError,
    BodyHashMismatchError,
    DKIMException,
    DnsFailureError,
    ExpiredSignatureError,
    HeaderParseError,
    KeyFormatError,
    KeyMalformedError,
    KeyResolutionError,
    KeyRevokedError,
    KeyUnusableError,
    MessageFormatError,
    NoKeyFoundError,
    ParameterError,
    SignatureInvalidError,
    UnsupportedAlgorithmForSigning,
    ValidationError,
    )
from dkimcore.hashing import (
    body_hash,
    hash_headers,
    HashThrough,
    select_headers,
    )
from dkimcore.message import Message
from dkimcore.resolver import resolve_key
from dkimcore.signature import (
    fold,
    parse_signature,
    SignatureRecord,
    strip_b_tag,
    )
from dkimcore.types import (
    SignatureResult,
    SigningAlgorithm,
    Status,
    )
from dkimcore.util import get_default_logger

__all__ = [
    "AlgorithmMismatchError",
    "BodyHashMismatchError",
    "DKIMException",
    "DnsFailureError",
    "ExpiredSignatureError",
    "HeaderParseError",
    "KeyFormatError",
    "KeyMalformedError",
    "KeyResolutionError",
    "KeyRevokedError",
    "KeyUnusableError",
    "MessageFormatError",
    "NoKeyFoundError",
    "ParameterError",
    "SignatureInvalidError",
    "UnsupportedAlgorithmForSigning",
    "ValidationError",
    "Relaxed",
    "Simple",
    "DKIM",
    "Message",
    "SignatureResult",
    "SigningAlgorithm",
    "Status",
    "sign",
    "verify",
    "verify_async",
]

Relaxed = b'relaxed'    # for clients passing dkimcore.Relaxed
Simple = b'simple'      # for clients passing dkimcore.Simple

#: Seconds a t= timestamp may lie in the future, for mailers with
#: inaccurate clocks.
DEFAULT_SLOP = 36000


def _domain_of(identity):
    return identity.rpartition(b'@')[2].lower()


#: Hold messages and options during DKIM signing and verification.
class DKIM(object):
  # NOTE - the first 2 indentation levels are 2 instead of 4
  # to minimize changed lines from the function only version.

  #: The U{RFC5322<http://tools.ietf.org/html/rfc5322#section-3.6>}
  #: complete list of singleton headers (which should
  #: appear at most once).  This can be used for a "paranoid" or
  #: "strict" signing mode.
  #: Bcc in this list is in the SHOULD NOT sign list, the rest could
  #: be in the default FROZEN list, but that could also make signatures
  #: more fragile than necessary.
  RFC5322_SINGLETON = (b'date', b'from', b'sender', b'reply-to', b'to', b'cc',
        b'bcc', b'message-id', b'in-reply-to', b'references')

  #: Header fields to protect from additions by default.
  #:
  #: The short list below is the result more of instinct than logic.
  FROZEN = (b'from', b'date', b'subject')

  #: The rfc6376 recommended header fields to sign
  SHOULD = (
    b'from', b'sender', b'reply-to', b'subject', b'date', b'message-id',
    b'to', b'cc', b'mime-version', b'content-type',
    b'content-transfer-encoding', b'content-id', b'content-description',
    b'resent-date', b'resent-from', b'resent-sender', b'resent-to',
    b'resent-cc', b'resent-message-id', b'in-reply-to', b'references',
    b'list-id', b'list-help', b'list-unsubscribe', b'list-subscribe',
    b'list-post', b'list-owner', b'list-archive'
  )

  #: The rfc6376 recommended header fields not to sign.
  SHOULD_NOT = (
    b'return-path', b'received', b'comments', b'keywords', b'bcc',
    b'resent-bcc', b'dkim-signature'
  )

  #: Create a DKIM instance to sign and verify rfc5322 messages.
  #:
  #: @param message: an RFC822 formatted message to be signed or verified
  #: (with either \\n or \\r\\n line endings)
  #: @param logger: a logger to which debug info will be written (default None)
  #: @param signature_algorithm: the signing algorithm to use when signing
  #: @param minkey: the minimum RSA key size to accept when verifying
  #: @param timeout: number of seconds for DNS lookup timeout
  #: @param slop: seconds a t= timestamp may be in the future
  #: @param normalize_newlines: treat a bare LF as CRLF (default True)
  #: @param debug_content: log the exact bytes hashed (default False)
  def __init__(self, message=None, logger=None,
        signature_algorithm=b'rsa-sha256', minkey=1024,
        timeout=DEFAULT_TIMEOUT, slop=DEFAULT_SLOP, normalize_newlines=True,
        debug_content=False):
    self.normalize_newlines = normalize_newlines
    self.set_message(message)
    if logger is None:
        logger = get_default_logger()
    self.logger = logger
    try:
        self.signature_algorithm = SigningAlgorithm.from_a_value(
            signature_algorithm)
    except ValueError:
        raise ParameterError(
            "Unsupported signature algorithm: %r" % signature_algorithm)
    #: Header fields which should be signed.  Default from RFC6376
    self.should_sign = set(DKIM.SHOULD)
    #: Header fields which should not be signed.  The default is from RFC6376.
    #: Attempting to sign these headers results in an exception.
    #: If it is necessary to sign one of these, it must be removed
    #: from this list first.
    self.should_not_sign = set(DKIM.SHOULD_NOT)
    #: Header fields to sign an extra time to prevent additions.
    self.frozen_sign = set(DKIM.FROZEN)
    #: Minimum public key size.  Shorter keys give KEY_UNUSABLE. The
    #: default is 1024
    self.minkey = minkey
    self.timeout = timeout
    self.slop = slop
    self.debug_content = debug_content

  def add_frozen(self, s):
    """ Add headers not in should_not_sign to frozen_sign.
    @param s: list of headers to add to frozen_sign

    >>> dkim = DKIM()
    >>> dkim.add_frozen(DKIM.RFC5322_SINGLETON)
    >>> [x.decode() for x in sorted(dkim.frozen_sign)]
    ['cc', 'date', 'from', 'in-reply-to', 'message-id', 'references', 'reply-to', 'sender', 'subject', 'to']
    """
    self.frozen_sign.update(x.lower() for x in s
        if x.lower() not in self.should_not_sign)

  #: Load a new message to be signed or verified.
  #: @param message: an RFC822 formatted message to be signed or verified
  #: (with either \\n or \\r\\n line endings)
  def set_message(self, message):
    if message:
      self.message = Message.from_bytes(message, self.normalize_newlines)
    else:
      self.message = Message((), b'')

  @property
  def headers(self):
    return self.message.headers

  @property
  def body(self):
    return self.message.body

  def default_sign_headers(self):
    """Return the default list of headers to sign: those in should_sign or
    frozen_sign, with those in frozen_sign signed an extra time to prevent
    additions."""
    hset = self.should_sign | self.frozen_sign
    include_headers = [x for x, y in self.headers
        if x.lower() in hset]
    return include_headers + [x for x in include_headers
        if x.lower() in self.frozen_sign]

  def all_sign_headers(self):
    """Return header list of all existing headers not in should_not_sign."""
    return [x for x, y in self.headers if x.lower() not in self.should_not_sign]

  #: Sign an RFC822 message and return the DKIM-Signature header line.
  #:
  #: The include_headers option gives full control over which header fields
  #: are signed.  Note that signing a header field that doesn't exist prevents
  #: that field from being added without breaking the signature.  Repeated
  #: fields (such as Received) can be signed multiple times.  Instances
  #: of the field are signed from bottom to top.  Signing a header field more
  #: times than are currently present prevents additional instances
  #: from being added without breaking the signature.
  #:
  #: The length option allows the message body to be appended to by MTAs
  #: enroute (e.g. mailing lists that append unsubscribe information)
  #: without breaking the signature.
  #:
  #: @param selector: the DKIM selector value for the signature
  #: @param domain: the DKIM domain value for the signature
  #: @param privkey: a PEM private key, an Ed25519 seed (raw or base64) or
  #: a key object from L{dkimcore.crypto.load_private_key}
  #: @param identity: the DKIM identity value for the signature
  #: (default "@"+domain)
  #: @param canonicalize: the canonicalization algorithms to use
  #: (default (Relaxed, Simple))
  #: @param include_headers: a list of strings indicating which headers
  #: are to be signed (default rfc6376 recommended headers)
  #: @param length: true if the l= tag should be included to indicate
  #: body length signed, or the number of canonical body bytes to sign
  #: (default False).
  #: @param timestamp: t= value (default now)
  #: @param expire_in: seconds after t= at which the signature expires
  #: (default no x= tag)
  #: @param copy_headers: include a z= copy of the signed header fields
  #: @return: DKIM-Signature header field terminated by '\r\n'
  #: @raise DKIMException: when the message, include_headers, or key are badly
  #: formed.
  def sign(self, selector, domain, privkey, identity=None,
        canonicalize=(b'relaxed', b'simple'), include_headers=None,
        length=False, timestamp=None, expire_in=None, copy_headers=False):
    algorithm = self.signature_algorithm
    if not algorithm.can_sign:
        raise UnsupportedAlgorithmForSigning(
            "%s may only be verified" % algorithm.value.decode())
    try:
        pk = load_private_key(privkey, algorithm)
    except UnparsableKeyError as e:
        raise KeyFormatError(str(e)) from e

    for name, value in ((b'selector', selector), (b'domain', domain)):
        try:
            if not value or not value.decode('ascii'):
                raise ParameterError("%s must not be empty" % name.decode())
        except UnicodeDecodeError:
            raise ParameterError("%s must be ASCII: %r" % (name.decode(), value))

    if identity is not None and (
            b'@' not in identity or
            _domain_of(identity) != domain.lower() and
            not _domain_of(identity).endswith(b'.' + domain.lower())):
        raise ParameterError("identity must end with domain")

    try:
        canon_policy = CanonicalizationPolicy.from_c_value(
            b'/'.join(canonicalize))
    except InvalidCanonicalizationPolicyError as e:
        raise ParameterError("invalid canonicalization: %r" % e.args[0])

    if include_headers is None:
        include_headers = self.default_sign_headers()
    include_headers = [x.lower() for x in include_headers]

    # rfc6376 says FROM is required
    if b'from' not in include_headers:
        raise ParameterError("The From header field MUST be signed")

    # raise exception for any SHOULD_NOT headers, call can modify
    # SHOULD_NOT if really needed.
    for x in include_headers:
        if x in self.should_not_sign:
            raise ParameterError("The %s header field SHOULD NOT be signed"
                % x.decode())

    if length is True:
        length = len(canon_policy.canonicalize_body(self.body))
    elif length is False or length is None:
        length = None
    elif int(length) < 0:
        raise ParameterError("length must not be negative")
    else:
        length = int(length)

    bodyhash = base64.b64encode(
        body_hash(canon_policy, algorithm.hasher, self.body, length))

    if timestamp is None:
        timestamp = int(time.time())
    expiration = None
    if expire_in is not None:
        if expire_in <= 0:
            raise ParameterError("expire_in must be positive")
        expiration = timestamp + int(expire_in)

    copied_headers = None
    if copy_headers:
        copied_headers = tuple(select_headers(self.headers, include_headers))

    record = SignatureRecord(
        version=b'1',
        algorithm=algorithm,
        canonicalization=canon_policy,
        domain=domain,
        selector=selector,
        signed_headers=tuple(include_headers),
        body_hash=bodyhash,
        # Force b= to fold onto it's own line so that refolding after
        # adding sig doesn't change whitespace for previous tags.
        signature=b'0' * 60,
        length=length,
        identity=identity or b"@" + domain,
        timestamp=timestamp,
        expiration=expiration,
        copied_headers=copied_headers,
        query=b"dns/txt",
        tags=None,
        )

    sig_value = strip_b_tag(record.to_header_value())
    dkim_header = (b'DKIM-Signature', b' ' + sig_value)
    h = HashThrough(algorithm.hasher(), self.debug_content)
    signed_headers = hash_headers(
        h, canon_policy, self.headers, include_headers, dkim_header)
    self.logger.debug("sign headers: %r" % signed_headers)
    if self.debug_content:
        self.logger.debug("sign hashed: %r" % h.hashed())

    try:
        sig2 = sign_digest(algorithm, pk, h)
    except DigestTooLargeError:
        raise ParameterError("digest too large for modulus")
    except UnparsableKeyError as e:
        raise KeyFormatError(str(e)) from e
    # Folding b= is explicity allowed, but yahoo and live.com are broken
    # Instead of leaving unfolded (which lets an MTA fold it later and still
    # breaks yahoo and live.com), we change the default signing mode to
    # relaxed/simple (for broken receivers), and fold now.
    sig_value = fold(sig_value + base64.b64encode(sig2))
    return b'DKIM-Signature: ' + sig_value + b"\r\n"

  def signature_headers(self):
    """Return the raw DKIM-Signature fields of the message, top first."""
    return self.message.get_all(b"dkim-signature")

  def check_times(self, sig):
    now = int(time.time())
    if sig.timestamp is not None and sig.timestamp > now + self.slop:
        raise HeaderParseError("t= value is in the future (%d)" % sig.timestamp)
    if sig.expiration is not None and sig.expiration < now:
        raise ExpiredSignatureError("x= value is past (%d)" % sig.expiration)

  def check_body_hash(self, sig):
    bodyhash = body_hash(sig.canonicalization, sig.algorithm.hasher,
        self.body, sig.length)
    self.logger.debug("bh: %s" % base64.b64encode(bodyhash))
    if bodyhash != sig.body_hash_bytes:
        raise BodyHashMismatchError(
            "body hash mismatch (got %s, expected %s)" %
            (base64.b64encode(bodyhash), sig.body_hash))

  def check_key(self, sig, pk):
    algorithm = sig.algorithm
    if pk.key_type != algorithm.key_family:
        raise AlgorithmMismatchError(
            "key type %r cannot verify %s" % (pk.key_type, algorithm.value))
    if not pk.allows_hash(algorithm.hash_name):
        raise AlgorithmMismatchError(
            "key does not allow %s" % algorithm.hash_name.decode())
    if not pk.allows_email():
        raise KeyUnusableError(
            "key service type does not include email: %r"
            % (pk.service_types,))
    if pk.strict and _domain_of(sig.identity) != sig.domain.lower():
        raise KeyUnusableError(
            "key forbids subdomain identity %r" % sig.identity)
    if algorithm.key_family == b'rsa' and pk.keysize < self.minkey:
        raise KeyUnusableError("public key too small: %d" % pk.keysize)

  def check_header_hash(self, sig, pk, sig_header):
    h = HashThrough(sig.algorithm.hasher(), self.debug_content)
    signed_headers = hash_headers(h, sig.canonicalization, self.headers,
        sig.signed_headers, sig_header)
    self.logger.debug("signed headers: %r" % signed_headers)
    if self.debug_content:
        self.logger.debug("signed for %s: %r" % (sig_header[0], h.hashed()))
    try:
        res = verify_digest(sig.algorithm, pk.key, h, sig.signature_bytes)
    except DigestTooLargeError:
        raise KeyUnusableError("digest too large for modulus")
    self.logger.debug("%s valid: %s" % (sig_header[0], res))
    if not res:
        raise SignatureInvalidError("signature did not verify")

  # Verify one signature header, never raising for a DKIM failure.
  #: @param idx: position of sig_header among the signature headers
  #: @param sig_header: (header_name, header_value)
  #: @param dnsfunc: interface to dns
  #: @return: a L{SignatureResult}
  async def verify_sig(self, idx, sig_header, dnsfunc=None):
    sig = pk = None
    try:
        sig = parse_signature(sig_header[1])
        self.logger.debug("sig: %r" % (sig.tags,))
        self.check_times(sig)
        self.check_body_hash(sig)
        name, pk = await resolve_key(sig.selector, sig.domain,
            dnsfunc=dnsfunc, timeout=self.timeout, logger=self.logger)
        self.logger.debug("key %s: %r" % (name, pk.tags))
        self.check_key(sig, pk)
        self.check_header_hash(sig, pk, sig_header)
        status, error = Status.PASS, None
    except DKIMException as e:
        if e.status is None:
            raise
        status, error = e.status, e
        self.logger.debug("signature %d: %s: %s" % (idx, e.status.value, e))
    return SignatureResult(
        index=idx,
        status=status,
        domain=sig.domain if sig else None,
        selector=sig.selector if sig else None,
        signature=sig,
        keysize=pk.keysize if pk else 0,
        testing=pk.testing if pk else False,
        error=error,
        )

  #: Verify a DKIM signature.
  #: @type idx: int
  #: @param idx: which signature to verify.  The first (topmost) signature is 0.
  #: @type dnsfunc: callable
  #: @param dnsfunc: an optional function to lookup TXT resource records
  #: for a DNS domain.  The default uses dnspython.
  #: @return: a L{SignatureResult}
  #: @raise ParameterError: when there is no signature at idx
  async def verify(self, idx=0, dnsfunc=None):
    sigheaders = self.signature_headers()
    if len(sigheaders) <= idx:
        raise ParameterError("no DKIM-Signature at index %d" % idx)
    return await self.verify_sig(idx, sigheaders[idx], dnsfunc)

  #: Verify every DKIM signature of the message concurrently.
  #: @param dnsfunc: an optional function to lookup TXT resource records
  #: @return: list of L{SignatureResult}, one per signature, top first
  async def verify_all(self, dnsfunc=None):
    sigheaders = self.signature_headers()
    return list(await asyncio.gather(*[
        self.verify_sig(idx, sig_header, dnsfunc)
        for idx, sig_header in enumerate(sigheaders)]))


def sign(message, selector, domain, privkey, identity=None,
         canonicalize=(b'relaxed', b'simple'),
         signature_algorithm=b'rsa-sha256',
         include_headers=None, length=False, logger=None,
         timestamp=None, expire_in=None, copy_headers=False,
         normalize_newlines=True):
    """Sign an RFC822 message and return the DKIM-Signature header line.
    @param message: an RFC822 formatted message (with either \\n or \\r\\n line endings)
    @param selector: the DKIM selector value for the signature
    @param domain: the DKIM domain value for the signature
    @param privkey: a PEM private key, or an Ed25519 seed
    @param identity: the DKIM identity value for the signature (default "@"+domain)
    @param canonicalize: the canonicalization algorithms to use (default (Relaxed, Simple))
    @param signature_algorithm: the signing algorithm to use when signing
    @param include_headers: a list of strings indicating which headers are to be signed (default rfc6376 recommended headers)
    @param length: true if the l= tag should be included to indicate body length, or the number of bytes to sign (default False)
    @param logger: a logger to which debug info will be written (default None)
    @param timestamp: the t= value (default now)
    @param expire_in: seconds until the signature expires (default never)
    @param copy_headers: add a z= copy of the signed header fields
    @param normalize_newlines: treat a bare LF as CRLF (default True)
    @return: DKIM-Signature header field terminated by \\r\\n
    @raise DKIMException: when the message, include_headers, or key are badly formed.
    """
    d = DKIM(message, logger=logger, signature_algorithm=signature_algorithm,
        normalize_newlines=normalize_newlines)
    return d.sign(selector, domain, privkey, identity=identity,
        canonicalize=canonicalize, include_headers=include_headers,
        length=length, timestamp=timestamp, expire_in=expire_in,
        copy_headers=copy_headers)


async def verify_async(message, logger=None, dnsfunc=None, minkey=1024,
        timeout=DEFAULT_TIMEOUT, normalize_newlines=True):
    """Verify every DKIM signature on an RFC822 formatted message.

    Signatures are checked concurrently, each with its own key lookup.
    @param message: an RFC822 formatted message (with either \\n or \\r\\n line endings)
    @param logger: a logger to which debug info will be written (default None)
    @param dnsfunc: an optional function to lookup TXT resource records
    @param minkey: the minimum RSA key size to accept
    @param timeout: number of seconds for DNS lookup timeout (default = 5)
    @return: list of L{SignatureResult}, one per DKIM-Signature, top first
    """
    d = DKIM(message, logger=logger, minkey=minkey, timeout=timeout,
        normalize_newlines=normalize_newlines)
    results = await d.verify_all(dnsfunc=dnsfunc)
    if logger is not None:
        for result in results:
            if not result.passed:
                logger.error("%s" % result)
    return results


def verify(message, logger=None, dnsfunc=None, minkey=1024,
        timeout=DEFAULT_TIMEOUT, normalize_newlines=True):
    """Verify every DKIM signature on an RFC822 formatted message.

    Runs L{verify_async} in a new event loop, so it must not be called from
    a running loop.
    @return: list of L{SignatureResult}, one per DKIM-Signature, top first
    """
    return asyncio.run(verify_async(message, logger=logger, dnsfunc=dnsfunc,
        minkey=minkey, timeout=timeout, normalize_newlines=normalize_newlines))
