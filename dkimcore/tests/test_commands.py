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

import io
import os.path
import unittest
from unittest import mock

import dkimcore
from dkimcore import dkimsign, dkimverify
from dkimcore.dnsplug import DNSNotFound
from dkimcore.tests.test_dkim import read_test_data

KEY_FILE = os.path.join(os.path.dirname(__file__), 'data', 'test.private')


def run_main(main, argv, stdin):
    stdout = io.TextIOWrapper(io.BytesIO())
    stderr = io.StringIO()
    with mock.patch('sys.stdin', io.TextIOWrapper(io.BytesIO(stdin))), \
            mock.patch('sys.stdout', stdout), \
            mock.patch('sys.stderr', stderr):
        code = main(argv)
        stdout.flush()
    return code, stdout.buffer.getvalue(), stderr.getvalue()


class TestCommands(unittest.TestCase):

    def setUp(self):
        self.message = read_test_data("test.message")
        self.dns = mock.patch(
            'dkimcore.resolver.get_txt',
            lambda name, timeout=None: [read_test_data("test.txt")])

    def test_sign_then_verify(self):
        code, signed, err = run_main(
            dkimsign.main, ['test', 'example.com', KEY_FILE], self.message)
        self.assertEqual(0, code)
        self.assertTrue(signed.startswith(b'DKIM-Signature: v=1;'))
        self.assertTrue(signed.endswith(self.message))
        with self.dns:
            code, out, err = run_main(
                dkimverify.main, ['--minkey', '512'], signed)
        self.assertEqual(0, code)
        self.assertIn(b'signature ok', out)

    def test_sign_options(self):
        code, signed, err = run_main(
            dkimsign.main,
            ['test', 'example.com', KEY_FILE, 'identity=joe@example.com',
             '--hcanon', 'simple', '--bcanon', 'relaxed', '--length'],
            self.message)
        self.assertEqual(0, code)
        unfolded = signed.replace(b'\r\n ', b'')
        self.assertIn(b'c=simple/relaxed;', unfolded)
        self.assertIn(b'i=joe@example.com;', unfolded)
        self.assertIn(b' l=', unfolded)

    def test_sign_failure_passes_message_through(self):
        code, out, err = run_main(
            dkimsign.main, ['test', 'example.com', KEY_FILE,
                            '--signalg', 'ed25519-sha256'], self.message)
        self.assertEqual(1, code)
        self.assertEqual(self.message, out)
        self.assertTrue(err)

    def test_verify_failure(self):
        code, signed, err = run_main(
            dkimsign.main, ['test', 'example.com', KEY_FILE], self.message)
        with self.dns:
            code, out, err = run_main(dkimverify.main, [], signed)
        self.assertEqual(1, code)
        self.assertIn(b'key-unusable', out)
        self.assertIn(b'signature verification failed', out)

    def test_verify_one_good_signature_is_enough(self):
        def get_txt(name, timeout=None):
            if name.startswith('test.'):
                return [read_test_data("test.txt")]
            raise DNSNotFound(name)
        key = read_test_data("test.private")
        signed = dkimcore.sign(
            self.message, b'test', b'example.com', key) + self.message
        signed = dkimcore.sign(
            signed, b'other', b'example.com', key) + signed
        with mock.patch('dkimcore.resolver.get_txt', get_txt):
            code, out, err = run_main(
                dkimverify.main, ['--minkey', '512'], signed)
        self.assertEqual(0, code)
        self.assertIn(b'no-key', out)
        self.assertIn(b'signature ok', out)

    def test_verify_unsigned(self):
        code, out, err = run_main(dkimverify.main, [], self.message)
        self.assertEqual(1, code)
        self.assertIn(b'no signature', out)


def test_suite():
    from unittest import TestLoader
    return TestLoader().loadTestsFromName(__name__)
