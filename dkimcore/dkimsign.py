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


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    # Backward compatibility hack because argparse doesn't support optional
    # positional arguments
    arguments = ['--' + arg if arg[:8] == 'identity' else arg for arg in argv]
    parser = argparse.ArgumentParser(
        description='Produce DKIM signature for email messages.')
    parser.add_argument('selector', action="store")
    parser.add_argument('domain', action="store")
    parser.add_argument('privatekeyfile', action="store")
    parser.add_argument('--hcanon', choices=['simple', 'relaxed'],
        default='relaxed',
        help='Header canonicalization algorithm: default=relaxed')
    parser.add_argument('--bcanon', choices=['simple', 'relaxed'],
        default='simple',
        help='Body canonicalization algorithm: default=simple')
    parser.add_argument('--signalg', choices=['rsa-sha256', 'ed25519-sha256'],
        default='rsa-sha256',
        help='Signature algorithm: default=rsa-sha256')
    parser.add_argument('--identity', help='Optional value for i= tag.')
    parser.add_argument('--length', action='store_true',
        help='Add an l= tag with the signed body length.')
    parser.add_argument('--expire', type=int, metavar='SECONDS',
        help='Add an x= tag this many seconds after t=.')
    parser.add_argument('-v', '--verbose', action='store_true',
        help='Log debugging information to stderr.')
    args = parser.parse_args(arguments)

    logger = None
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)
        logger = logging.getLogger('dkimsign')

    message = sys.stdin.buffer.read()
    identity = args.identity.encode('ascii') if args.identity else None
    with open(args.privatekeyfile, "rb") as f:
        privkey = f.read()
    try:
        sig = dkimcore.sign(message, args.selector.encode('ascii'),
            args.domain.encode('ascii'), privkey, identity=identity,
            canonicalize=(args.hcanon.encode(), args.bcanon.encode()),
            signature_algorithm=args.signalg.encode(), length=args.length,
            expire_in=args.expire, logger=logger)
    except dkimcore.DKIMException as e:
        print(e, file=sys.stderr)
        sys.stdout.buffer.write(message)
        return 1
    sys.stdout.buffer.write(sig)
    sys.stdout.buffer.write(message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
