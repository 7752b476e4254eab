#!/usr/bin/env python

"""The setup script."""

import io
from os import path, getenv
from setuptools import setup, find_packages

with open('README.md') as readme_file:
    readme = readme_file.read()

with open(getenv('CONFIG_FILE', './pgforge/pgforge.yaml'), 'r') as config_file:
    for line in config_file:
        if line.startswith('version:'):
            version = line.split(':', 1)[-1].strip()
            break
    else:
        version = '0.0.0'

here = path.abspath(path.dirname(__file__))

# get the dependencies and installs
with io.open(path.join(here, "requirements.txt"), encoding="utf-8") as f:
    all_reqs = f.read().split("\n")

install_requires = [x.strip() for x in all_reqs if x.strip() and not x.startswith("#")]

test_requirements = ['pytest>=7.0']

setup(
    author="pgforge maintainers",
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: System Administrators',
        'Natural Language :: English',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Database',
    ],
    description="Manifest-driven build and configuration toolkit for PostgreSQL extension images.",
    entry_points={
        'console_scripts': [
            'pgforge=pgforge.utils.clis.manifest_cli:cli_manifest_main',
            'pgforge-build=pgforge.utils.clis.build_cli:cli_build_main',
        ],
    },
    install_requires=install_requires,
    extras_require={'test': test_requirements},
    long_description=readme,
    long_description_content_type='text/markdown',
    include_package_data=True,
    keywords='pgforge postgresql extensions',
    name='pgforge',
    packages=find_packages(include=['pgforge', 'pgforge.*']),
    package_data={"pgforge": ["pgforge.yaml"]},
    test_suite='pgforge/tests',
    tests_require=test_requirements,
    version=version,
    zip_safe=False,
)
