# SPDX-FileCopyrightText: 2024 SnapCycle Developers
# SPDX-License-Identifier: Apache-2.0

"""Setup and installation script for snapcycle."""


# standard libs
import re
from setuptools import setup, find_packages


# get long description from README.rst
with open('README.rst', mode='r') as readme:
    long_description = readme.read()


# get package metadata by parsing __meta__ module
with open('snapcycle/__meta__.py', mode='r') as source:
    content = source.read().strip()
    metadata = {key: re.search(key + r'\s*=\s*[\'"]([^\'"]*)[\'"]', content).group(1)
                for key in ['__version__', '__developer__', '__contact__',
                            '__description__', '__license__', '__keywords__', '__website__']}


setup(
    name                 = 'snapcycle',
    version              = metadata['__version__'],
    author               = metadata['__developer__'],
    author_email         = metadata['__contact__'],
    description          = metadata['__description__'],
    license              = metadata['__license__'],
    keywords             = metadata['__keywords__'],
    url                  = metadata['__website__'],
    packages             = find_packages(exclude=['tests', 'tests.*']),
    include_package_data = True,
    long_description     = long_description,
    long_description_content_type = 'text/x-rst',
    classifiers          = ['Development Status :: 4 - Beta',
                            'Topic :: System :: Archiving :: Backup',
                            'Programming Language :: Python :: 3',
                            'Programming Language :: Python :: 3.9',
                            'Programming Language :: Python :: 3.10',
                            'Programming Language :: Python :: 3.11',
                            'Programming Language :: Python :: 3.12',
                            'Operating System :: POSIX :: Linux', ],
    python_requires      = '>=3.9',
    entry_points         = {'console_scripts': ['snapcycle=snapcycle.apps.snapcycle:main',
                                                'snapcycled=snapcycle.apps.snapcycled:main']},
    install_requires     = [
        'cmdkit>=2.6.1', 'tomlkit>=0.11.0',
        'flask>=2.0.0', 'gunicorn>=20.1.0', 'requests>=2.24.0', 'rich>=9.4.0',
    ],
    extras_require       = {
        'test': ['pytest>=7.0', 'hypothesis>=6.0'],
    },
)
