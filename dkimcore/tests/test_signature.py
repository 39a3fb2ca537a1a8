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

from dkimcore.canonicalization import (
    CanonicalizationPolicy,
    Relaxed,
    Simple,
    )
from dkimcore.errors import HeaderParseError
from dkimcore.signature import (
    decode_copied_headers,
    encode_copied_headers,
    fold,
    parse_signature,
    qp_decode,
    qp_encode,
    strip_b_tag,
    )
from dkimcore.types import SigningAlgorithm

SAMPLE = (
    b' v=1; a=rsa-sha256; c=relaxed/simple; d=example.com;'
    b' i=@mail.example.com; q=dns/txt; s=test; t=1300000000;'
    b' x=1300003600;\r\n h=From : To : Subject; l=42;'
    b' bh=2jUSOH9NhtVGCQWNr9BrIAPreKQjO6Sn7XIkfJVOzv8=;\r\n'
    b' b=dGVzdA\r\n =='
    )


class TestFold(unittest.TestCase):

    def test_short_line(self):
        self.assertEqual(
            b"foo", fold(b"foo"))

    def test_long_line(self):
        self.assertEqual(
            b"foo" * 24 + b"\r\n foo", fold(b"foo" * 25))

    def test_folds_at_space(self):
        folded = fold(b"x" * 70 + b" " + b"y" * 10)
        self.assertEqual(b"x" * 70 + b" \r\n " + b"y" * 10, folded)

    def test_existing_fold_kept(self):
        self.assertEqual(
            b"a=b;\r\n b=c", fold(b"a=b;\r\n b=c"))


class TestStripBTag(unittest.TestCase):

    def test_only_b_value_removed(self):
        self.assertEqual(
            b' v=1; bh=abc=; b=',
            strip_b_tag(b' v=1; bh=abc=; b=dGVz\r\n dA=='))

    def test_b_in_middle(self):
        self.assertEqual(
            b'v=1; b= ; d=example.com',
            strip_b_tag(b'v=1; b=dGVzdA== ; d=example.com'))

    def test_trailing_crlf_dropped(self):
        self.assertEqual(
            b' v=1; b=',
            strip_b_tag(b' v=1; b=dGVzdA==\r\n'))

    def test_folding_around_equals(self):
        self.assertEqual(
            b' v=1;\r\n b\r\n =',
            strip_b_tag(b' v=1;\r\n b\r\n =dGVz dA=='))


class TestQuotedPrintable(unittest.TestCase):

    def test_encode(self):
        self.assertEqual(b'=20Joe=3B=7C=3D', qp_encode(b' Joe;|='))

    def test_decode(self):
        self.assertEqual(b' Joe;|=', qp_decode(b'=20Joe=3b=7C=3D'))

    def test_copied_headers(self):
        headers = ((b'From', b' joe@example.com\r\n'), (b'Subject', b' hi'))
        z = encode_copied_headers(headers)
        self.assertEqual(b'From:=20joe@example.com|Subject:=20hi', z)
        self.assertEqual(
            ((b'From', b' joe@example.com'), (b'Subject', b' hi')),
            decode_copied_headers(z))

    def test_bad_copied_header(self):
        self.assertRaises(HeaderParseError, decode_copied_headers, b'From')


class TestParseSignature(unittest.TestCase):

    def test_parse(self):
        sig = parse_signature(SAMPLE)
        self.assertEqual(b'1', sig.version)
        self.assertIs(SigningAlgorithm.RSA_SHA256, sig.algorithm)
        self.assertEqual(
            CanonicalizationPolicy(Relaxed, Simple), sig.canonicalization)
        self.assertEqual(b'example.com', sig.domain)
        self.assertEqual(b'test', sig.selector)
        self.assertEqual((b'from', b'to', b'subject'), sig.signed_headers)
        self.assertEqual(b'dGVzdA==', sig.signature)
        self.assertEqual(b'test', sig.signature_bytes)
        self.assertEqual(42, sig.length)
        self.assertEqual(b'@mail.example.com', sig.identity)
        self.assertEqual(1300000000, sig.timestamp)
        self.assertEqual(1300003600, sig.expiration)
        self.assertEqual(32, len(sig.body_hash_bytes))

    def test_defaults(self):
        sig = parse_signature(
            b'v=1; a=rsa-sha256; d=example.com; s=test; h=from;'
            b' bh=YWJj; b=YWJj')
        self.assertEqual(CanonicalizationPolicy(Simple, Simple),
                         sig.canonicalization)
        self.assertEqual(b'@example.com', sig.identity)
        self.assertIsNone(sig.length)
        self.assertIsNone(sig.timestamp)
        self.assertIsNone(sig.expiration)
        self.assertIsNone(sig.copied_headers)

    def test_folding_inside_values_removed(self):
        sig = parse_signature(
            SAMPLE.replace(b'rsa-sha256', b'rsa-\r\n sha256')
            .replace(b'd=example.com', b'd=example.\r\n com')
            .replace(b'l=42', b'l=4 2')
            .replace(b't=1300000000', b't=1300\t000000'))
        self.assertIs(SigningAlgorithm.RSA_SHA256, sig.algorithm)
        self.assertEqual(b'example.com', sig.domain)
        self.assertEqual(42, sig.length)
        self.assertEqual(1300000000, sig.timestamp)

    def test_unknown_tags_kept(self):
        sig = parse_signature(SAMPLE + b'; foo=bar')
        self.assertEqual(b'bar', sig.tags[b'foo'])
        with self.assertRaises(TypeError):
            sig.tags[b'foo'] = b'baz'

    def test_round_trip(self):
        sig = parse_signature(SAMPLE)
        again = parse_signature(sig.to_header_value())
        self.assertEqual(sig.tag_list(), again.tag_list())

    def assertParseError(self, value):
        self.assertRaises(HeaderParseError, parse_signature, value)

    def test_missing_required(self):
        for tag in (b'v', b'a', b'b', b'bh', b'd', b'h', b's'):
            tags = [x for x in SAMPLE.split(b';')
                    if x.strip().split(b'=')[0] != tag]
            self.assertParseError(b';'.join(tags))

    def test_bad_version(self):
        self.assertParseError(SAMPLE.replace(b'v=1', b'v=2'))

    def test_duplicate_tag(self):
        self.assertParseError(SAMPLE + b'; d=example.org')

    def test_unknown_algorithm(self):
        self.assertParseError(SAMPLE.replace(b'rsa-sha256', b'dsa-sha256'))

    def test_unknown_canonicalization(self):
        self.assertParseError(SAMPLE.replace(b'relaxed/simple', b'loose'))

    def test_identity_outside_domain(self):
        self.assertParseError(
            SAMPLE.replace(b'@mail.example.com', b'@example.org'))
        self.assertParseError(
            SAMPLE.replace(b'@mail.example.com', b'@badexample.com'))

    def test_bad_length(self):
        self.assertParseError(SAMPLE.replace(b'l=42', b'l=-1'))
        self.assertParseError(SAMPLE.replace(b'l=42', b'l=' + b'9' * 77))

    def test_bad_query(self):
        self.assertParseError(SAMPLE.replace(b'dns/txt', b'http'))

    def test_expiry_before_timestamp(self):
        self.assertParseError(SAMPLE.replace(b'x=1300003600', b'x=1200000000'))

    def test_from_not_signed(self):
        self.assertParseError(SAMPLE.replace(b'From : ', b''))

    def test_bad_base64(self):
        self.assertParseError(SAMPLE.replace(b'dGVzdA', b'dGV*dA'))

    def test_non_ascii_domain(self):
        self.assertParseError(SAMPLE.replace(b'd=example.com', b'd=ex\xe9.com')
                              .replace(b'i=@mail.example.com; ', b''))


def test_suite():
    from unittest import TestLoader
    return TestLoader().loadTestsFromName(__name__)
