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

import re
from collections import namedtuple

from dkimcore.errors import MessageFormatError

__all__ = [
    'Message',
    'rfc822_parse',
    ]


def rfc822_parse(message, normalize_newlines=True):
    """Parse a message in RFC822 format.

    @param message: The message in RFC822 format.
    @param normalize_newlines: treat a bare LF as a line separator, as if
        it were CRLF. When False only CRLF separates lines and a bare LF is
        kept as part of the line it appears in.
    @return: Returns a tuple of (headers, body) where headers is a list of
        (name, value) pairs. The body is a CRLF-separated string.
    """
    headers = []
    if normalize_newlines:
        lines = re.split(b"\r?\n", message)
    else:
        lines = message.split(b"\r\n")
    i = 0
    while i < len(lines):
        if len(lines[i]) == 0:
            # End of headers, return what we have plus the body, excluding
            # the blank line.
            i += 1
            break
        if lines[i][0] in (0x09, 0x20):
            if not headers:
                raise MessageFormatError(
                    "Continuation line before first header: %r" % lines[i])
            headers[-1][1] += lines[i] + b"\r\n"
        else:
            m = re.match(br"([\x21-\x39\x3b-\x7e]+):", lines[i])
            if m is not None:
                headers.append([m.group(1), lines[i][m.end(0):] + b"\r\n"])
            elif lines[i].startswith(b"From "):
                pass
            else:
                raise MessageFormatError(
                    "Unexpected characters in RFC822 header: %r" % lines[i])
        i += 1
    return (headers, b"\r\n".join(lines[i:]))


class Message(namedtuple('Message', ['headers', 'body'])):
    """An immutable view of a message: its header fields, in the order
    received with original casing and folding, and its raw body.

    Each header is a (name, value) tuple of byte strings; the value starts
    right after the colon and ends with the field's CRLF.
    """

    __slots__ = ()

    @classmethod
    def from_bytes(cls, message, normalize_newlines=True):
        if isinstance(message, str):
            message = message.encode('utf-8')
        headers, body = rfc822_parse(message, normalize_newlines)
        return cls(tuple((x, y) for x, y in headers), body)

    def get_all(self, name):
        """Return the (name, value) pairs of all fields called name."""
        name = name.lower()
        return [(x, y) for x, y in self.headers if x.lower() == name]
