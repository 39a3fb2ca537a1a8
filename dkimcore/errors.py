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

from dkimcore.types import Status

__all__ = [
    'AlgorithmMismatchError',
    'BodyHashMismatchError',
    'DKIMException',
    'DnsFailureError',
    'ExpiredSignatureError',
    'HeaderParseError',
    'KeyFormatError',
    'KeyMalformedError',
    'KeyResolutionError',
    'KeyRevokedError',
    'KeyUnusableError',
    'MessageFormatError',
    'NoKeyFoundError',
    'ParameterError',
    'SignatureInvalidError',
    'UnsupportedAlgorithmForSigning',
    'ValidationError',
    ]


class DKIMException(Exception):
    """Base class for DKIM errors."""
    #: The verification L{Status} this error reports.
    status = None
    retryable = False


class MessageFormatError(DKIMException):
    """RFC822 message format error."""
    status = Status.PARSE_ERROR


class HeaderParseError(MessageFormatError):
    """Malformed DKIM-Signature header: bad tag syntax, missing required
    tag, bad version or algorithm."""
    pass


class ParameterError(DKIMException):
    """Input parameter error."""
    pass


class UnsupportedAlgorithmForSigning(ParameterError):
    """The algorithm may be verified but must not be used to sign."""
    pass


class KeyFormatError(DKIMException):
    """Key format error while parsing a public or private key."""
    status = Status.KEY_MALFORMED


class KeyResolutionError(DKIMException):
    """Base class for public key lookup failures."""
    pass


class NoKeyFoundError(KeyResolutionError):
    """No key record is published at the selector name."""
    status = Status.NO_KEY


class DnsFailureError(KeyResolutionError):
    """Transient DNS failure (timeout, SERVFAIL). The caller may retry."""
    status = Status.DNS_FAILURE
    retryable = True


class KeyMalformedError(KeyResolutionError, KeyFormatError):
    """The published key record cannot be parsed."""
    status = Status.KEY_MALFORMED


class KeyRevokedError(KeyResolutionError):
    """The published key record has an empty p= tag."""
    status = Status.KEY_REVOKED


class AlgorithmMismatchError(KeyResolutionError):
    """The key record does not allow the signature's algorithm."""
    status = Status.ALGORITHM_MISMATCH


class KeyUnusableError(KeyResolutionError):
    """The key record is valid but must not be used for this signature."""
    status = Status.KEY_UNUSABLE


class ValidationError(DKIMException):
    """Validation error."""
    status = Status.SIGNATURE_INVALID


class ExpiredSignatureError(ValidationError):
    """The x= expiry of the signature has passed."""
    status = Status.EXPIRED


class BodyHashMismatchError(ValidationError):
    """The computed body hash differs from bh=."""
    status = Status.BODY_HASH_MISMATCH


class SignatureInvalidError(ValidationError):
    """The b= signature does not verify against the header hash."""
    status = Status.SIGNATURE_INVALID
