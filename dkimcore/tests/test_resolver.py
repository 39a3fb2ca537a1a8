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
import threading
import time
import unittest
from unittest import mock

from dkimcore.dnsplug import (
    DNSFailure,
    DNSNotFound,
    )
from dkimcore.errors import (
    DnsFailureError,
    KeyMalformedError,
    KeyRevokedError,
    NoKeyFoundError,
    )
from dkimcore.resolver import (
    join_record,
    key_name,
    resolve_key,
    select_key_record,
    )
from dkimcore.tests.test_dkim import read_test_data


class TestKeyName(unittest.TestCase):

    def test_name(self):
        self.assertEqual(
            'test._domainkey.example.com.', key_name(b'test', b'example.com'))

    def test_trailing_dot(self):
        self.assertEqual(
            'test._domainkey.example.com.', key_name('test', 'example.com.'))


class TestRecordSelection(unittest.TestCase):

    def test_split_strings_joined(self):
        self.assertEqual(b'v=DKIM1; p=abc', join_record((b'v=DKIM1; ', b'p=abc')))
        self.assertEqual(b'p=abc', join_record('p=abc'))

    def test_first_record_wins(self):
        self.assertEqual(
            b'p=first', select_key_record([(b'p=', b'first'), b'p=second']))

    def test_selection_index(self):
        with mock.patch('dkimcore.resolver.KEY_RECORD_SELECTION', 1):
            self.assertEqual(
                b'p=second', select_key_record([b'p=first', b'p=second']))


class TestResolveKey(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.txt = read_test_data('test.txt')
        self.queried = []

    def dnsfunc(self, name):
        self.queried.append(name)
        return [self.txt]

    async def test_plain_function(self):
        name, pk = await resolve_key(b'test', b'example.com', self.dnsfunc)
        self.assertEqual('test._domainkey.example.com.', name)
        self.assertEqual(['test._domainkey.example.com.'], self.queried)
        self.assertEqual(512, pk.keysize)

    async def test_coroutine_function(self):
        async def dnsfunc(name):
            return [(self.txt[:20], self.txt[20:])]
        name, pk = await resolve_key(b'test', b'example.com', dnsfunc)
        self.assertEqual(512, pk.keysize)

    async def test_bare_bytes_answer(self):
        name, pk = await resolve_key(
            b'test', b'example.com', lambda name: self.txt)
        self.assertEqual(b'rsa', pk.key_type)

    async def test_first_of_several_records(self):
        name, pk = await resolve_key(
            b'test', b'example.com', lambda name: [self.txt, b'p=garbage'])
        self.assertEqual(512, pk.keysize)
        with self.assertRaises(KeyMalformedError):
            await resolve_key(
                b'test', b'example.com', lambda name: [b'p=garbage', self.txt])

    async def test_not_found(self):
        def dnsfunc(name):
            raise DNSNotFound(name)
        with self.assertRaises(NoKeyFoundError):
            await resolve_key(b'test', b'example.com', dnsfunc)

    async def test_empty_answer(self):
        for answer in (None, [], b''):
            with self.assertRaises(NoKeyFoundError):
                await resolve_key(b'test', b'example.com', lambda name: answer)

    async def test_failure(self):
        def dnsfunc(name):
            raise DNSFailure("SERVFAIL")
        with self.assertRaises(DnsFailureError) as cm:
            await resolve_key(b'test', b'example.com', dnsfunc)
        self.assertTrue(cm.exception.retryable)

    async def test_timeout(self):
        async def dnsfunc(name):
            await asyncio.sleep(10)
        with self.assertRaises(DnsFailureError):
            await resolve_key(b'test', b'example.com', dnsfunc, timeout=0.01)

    async def test_blocking_function_times_out(self):
        release = threading.Event()
        self.addCleanup(release.set)
        def dnsfunc(name):
            release.wait(5)
            return [self.txt]
        start = time.monotonic()
        with self.assertRaises(DnsFailureError):
            await resolve_key(b'test', b'example.com', dnsfunc, timeout=0.05)
        self.assertLess(time.monotonic() - start, 2)

    async def test_default_lookup_gets_timeout(self):
        calls = []
        async def get_txt(name, timeout):
            calls.append((name, timeout))
            return [self.txt]
        with mock.patch('dkimcore.resolver.get_txt', get_txt):
            await resolve_key(b'test', b'example.com', timeout=12)
        self.assertEqual([('test._domainkey.example.com.', 12)], calls)

    async def test_revoked(self):
        with self.assertRaises(KeyRevokedError):
            await resolve_key(
                b'test', b'example.com', lambda name: [b'v=DKIM1; p='])


def test_suite():
    from unittest import TestLoader
    return TestLoader().loadTestsFromName(__name__)
