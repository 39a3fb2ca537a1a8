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

import argparse
import logging
import sys

import dkimcore
from dkimcore.dnsplug import DEFAULT_TIMEOUT


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Verify DKIM signatures of an email message.',
        epilog="message to be verified follows commands on stdin")
    parser.add_argument('--minkey', type=int, default=1024,
        help='Minimum RSA key size in bits: default=1024')
    parser.add_argument('--timeout', type=float, default=DEFAULT_TIMEOUT,
        help='DNS lookup timeout in seconds: default=%d' % DEFAULT_TIMEOUT)
    parser.add_argument('-v', '--verbose', action='store_true',
        help='Log debugging information to stderr.')
    args = parser.parse_args(argv)

    logger = None
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)
        logger = logging.getLogger('dkimverify')

    message = sys.stdin.buffer.read()
    try:
        results = dkimcore.verify(message, logger=logger, minkey=args.minkey,
            timeout=args.timeout)
    except dkimcore.DKIMException as e:
        print(e, file=sys.stderr)
        return 1
    if not results:
        print("no signature")
        return 1
    for result in results:
        print(result)
    if any(result.passed for result in results):
        print("signature ok")
        return 0
    print("signature verification failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())
