#!/usr/bin/env python

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
# Copyright (c) 2011 Scott Kitterman <scott@kitterman.com>

from setuptools import setup

version = "0.6"

setup(
    name = "dkimcore",
    version = version,
    description = "DKIM (DomainKeys Identified Mail) signing and verification",
    long_description =
    """dkimcore is a Python library that implements DKIM (DomainKeys
Identified Mail) email signing and verification, with RSA and Ed25519
signatures and asynchronous key lookup.""",
    author = "Greg Hewgill",
    author_email = "greg@hewgill.com",
    license = "BSD-like",
    packages = ["dkimcore", "dkimcore.tests"],
    package_data = {"dkimcore.tests": ["data/*"]},
    python_requires = ">=3.8",
    install_requires = [
        "dnspython>=2.0",
        "aiodns",
        "PyNaCl",
    ],
    extras_require = {
        "testing": ["pytest"],
    },
    entry_points = {
        "console_scripts": [
            "dkimsign = dkimcore.dkimsign:main",
            "dkimverify = dkimcore.dkimverify:main",
        ],
    },
    test_suite = "dkimcore.tests.test_suite",
)
