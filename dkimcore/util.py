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

import logging

__all__ = [
    'DuplicateTag',
    'get_default_logger',
    'InvalidTagSpec',
    'InvalidTagValueList',
    'parse_tag_value',
    ]


class InvalidTagValueList(Exception):
    pass


class DuplicateTag(InvalidTagValueList):
    pass


class InvalidTagSpec(InvalidTagValueList):
    pass


def parse_tag_value(tag_list):
    """Parse a DKIM Tag=Value list.

    Interprets the syntax specified by RFC6376 section 3.2. Folding
    whitespace around tags and values is stripped, whitespace inside a
    value is kept. A tag list naming the same tag twice is invalid as a
    whole.

    @param tag_list: A byte string (or str) containing a DKIM Tag=Value list.
    @return: a dict mapping tags to values, in the order they appeared
    """
    if isinstance(tag_list, bytes):
        semi, equals = b';', b'='
    else:
        semi, equals = ';', '='
    tags = {}
    tag_specs = tag_list.split(semi)
    # Trailing semicolons are valid.
    if not tag_specs[-1].strip():
        tag_specs.pop()
    for tag_spec in tag_specs:
        try:
            key, value = tag_spec.split(equals, 1)
        except ValueError:
            raise InvalidTagSpec(tag_spec)
        key = key.strip()
        if not key:
            raise InvalidTagSpec(tag_spec)
        if key in tags:
            raise DuplicateTag(key)
        tags[key] = value.strip()
    return tags


def get_default_logger():
    """Get the default dkimcore logger."""
    logger = logging.getLogger('dkimcore')
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return logger
