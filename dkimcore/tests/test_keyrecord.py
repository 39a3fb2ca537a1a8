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

import unittest

import nacl.signing

from dkimcore.crypto import RSAPublicKey
from dkimcore.errors import (
    KeyFormatError,
    KeyMalformedError,
    )
from dkimcore.keyrecord import parse_key_record
from dkimcore.tests.test_dkim import read_test_data


class TestParseKeyRecord(unittest.TestCase):

    def test_rsa(self):
        pk = parse_key_record(read_test_data('test.txt'))
        self.assertEqual(b'DKIM1', pk.version)
        self.assertEqual(b'rsa', pk.key_type)
        self.assertIsInstance(pk.key, RSAPublicKey)
        self.assertEqual(512, pk.keysize)
        self.assertIsNone(pk.hash_algorithms)
        self.assertEqual((b'*',), pk.service_types)
        self.assertFalse(pk.revoked)
        self.assertFalse(pk.testing)
        self.assertFalse(pk.strict)
        self.assertTrue(pk.allows_hash(b'sha256'))
        self.assertTrue(pk.allows_email())

    def test_ed25519(self):
        pk = parse_key_record(read_test_data('ed25519test.txt'))
        self.assertEqual(b'ed25519', pk.key_type)
        self.assertIsInstance(pk.key, nacl.signing.VerifyKey)
        self.assertEqual(256, pk.keysize)

    def test_str_record(self):
        pk = parse_key_record(read_test_data('test.txt').decode('ascii'))
        self.assertEqual(512, pk.keysize)

    def test_key_type_defaults_to_rsa(self):
        txt = read_test_data('test.txt').replace(b'k=rsa; ', b'')
        self.assertEqual(b'rsa', parse_key_record(txt).key_type)

    def test_version_optional(self):
        txt = read_test_data('test.txt').replace(b'v=DKIM1; ', b'')
        self.assertIsNone(parse_key_record(txt).version)

    def test_lists_and_flags(self):
        txt = read_test_data('test.txt').rstrip() + b'; h=sha1 : SHA256; s=email; t=y:s'
        pk = parse_key_record(txt)
        self.assertEqual((b'sha1', b'sha256'), pk.hash_algorithms)
        self.assertTrue(pk.allows_hash(b'sha256'))
        self.assertTrue(pk.allows_email())
        self.assertTrue(pk.testing)
        self.assertTrue(pk.strict)

    def test_hash_not_allowed(self):
        txt = read_test_data('test.txt').rstrip() + b'; h=sha1'
        self.assertFalse(parse_key_record(txt).allows_hash(b'sha256'))

    def test_other_service(self):
        txt = read_test_data('test.txt').rstrip() + b'; s=other'
        self.assertFalse(parse_key_record(txt).allows_email())

    def test_tags_read_only(self):
        pk = parse_key_record(read_test_data('test.txt'))
        self.assertEqual(b'rsa', pk.tags[b'k'])
        with self.assertRaises(TypeError):
            pk.tags[b'k'] = b'ed25519'

    def test_revoked(self):
        pk = parse_key_record(b'v=DKIM1; k=rsa; p=')
        self.assertTrue(pk.revoked)
        self.assertIsNone(pk.key)

    def test_unknown_key_type(self):
        pk = parse_key_record(b'k=dsa; p=YWJj')
        self.assertEqual(b'dsa', pk.key_type)
        self.assertIsNone(pk.key)

    def test_folded_key(self):
        txt = read_test_data('test.txt').replace(b'p=MFww', b'p=MF ww')
        self.assertEqual(512, parse_key_record(txt).keysize)

    def assertMalformed(self, txt):
        self.assertRaises(KeyMalformedError, parse_key_record, txt)

    def test_missing_p(self):
        self.assertMalformed(b'v=DKIM1; k=rsa')

    def test_bad_version(self):
        self.assertMalformed(b'v=DKIM2; p=YWJj')

    def test_duplicate(self):
        self.assertMalformed(b'p=YWJj; p=YWJj')

    def test_bad_grammar(self):
        self.assertMalformed(b'v=DKIM1; garbage')

    def test_bad_base64(self):
        self.assertMalformed(b'k=rsa; p=*notbase64*')

    def test_unparsable_key(self):
        self.assertMalformed(b'k=rsa; p=YWJj')
        self.assertMalformed(b'k=ed25519; p=YWJj')

    def test_is_key_format_error(self):
        self.assertRaises(KeyFormatError, parse_key_record, b'k=rsa; p=YWJj')


def test_suite():
    from unittest import TestLoader
    return TestLoader().loadTestsFromName(__name__)
