#!/usr/bin/env python
# Licensed under a 3-clause BSD style license - see LICENSE

from setuptools import setup, find_packages

setup(
    name="krcalib",
    version="0.1.0-dev",
    description="Pad by pad TPC gain calibration with Krypton decay clusters",
    packages=find_packages(),
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'h5py',
        'tables',
        'pandas',
        'astropy',
        'matplotlib',
        'traitlets',
        'iminuit>=2.0',
        'uproot>=5.0,<5.7',
        'pydantic>=2.0'
    ],
    package_data={
        'krcalib': [
            'data/*',
            'tests/resources/*',
        ],
    },
    extras_require={
        "tests": [
            "pytest",
            ],
    },
    tests_require=[
        'pytest',
    ],
    entry_points={
        'console_scripts': [
            'krcalib_pad_gains = krcalib.scripts.krcalib_pad_gains:main'
        ]
    }
)
